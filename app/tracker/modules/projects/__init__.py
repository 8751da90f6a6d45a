"""
Projects and their teams.

- Any team member can read, update, delete and invite to a project
- Removing a member is admin-only and clears that member's assignments
"""
