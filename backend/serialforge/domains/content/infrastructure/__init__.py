from .repositories import UnitRepository, WorkRepository, unit_key, units_prefix, work_key

__all__ = ["UnitRepository", "WorkRepository", "unit_key", "units_prefix", "work_key"]
