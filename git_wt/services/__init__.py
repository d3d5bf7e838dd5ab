"""Services for git-wt."""
