"""Member roster core: role permissions, bulk import reconciliation and record stores."""
