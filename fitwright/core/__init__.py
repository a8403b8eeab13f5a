"""
Core package for fitwright.
Lightweight package init to avoid import cycles.

Consumers should import submodules directly, e.g.:
  from fitwright.core.fixture import BrowserFixture
  from fitwright.core.wait import WaitEngine
  from fitwright.core.runner import ScriptRunner
"""

__all__: list[str] = []
