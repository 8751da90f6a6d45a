"""
Tickets scoped to a project.

Status is a flat field: To Do, In Progress and Done in any order.
"""
