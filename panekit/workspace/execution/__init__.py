"""Workspace materialization pipeline.

This package contains the core execution components:

- **skills**: Skill resolution (selector + ordered roots -> ResolvedSkill list)
- **layout**: Grid compilation (GridSpec -> GeometryTree)
- **drivers**: Command building (PaneDefinition + skills -> ExecutionSpec)
- **links**: Symlink materialization with an undo record (LinkLedger)
- **orchestrator**: Session lifecycle (launch / kill / list / join)
"""
