from pydantic import Field

from .member import CamelModel


class Group(CamelModel):
    id: str
    name: str
    subgroups: list[str] = Field(default_factory=list)

    def find_subgroup(self, name: str) -> str | None:
        """Return the stored spelling of a subgroup, matched case-insensitively."""
        wanted = name.strip().casefold()
        for subgroup in self.subgroups:
            if subgroup.casefold() == wanted:
                return subgroup
        return None


def find_group_by_name(groups: list[Group], name: str) -> Group | None:
    wanted = name.strip().casefold()
    if not wanted:
        return None
    for group in groups:
        if group.name.casefold() == wanted:
            return group
    return None
