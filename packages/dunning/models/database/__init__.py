from packages.dunning.models.database.dunning_case import DunningCaseEntity

__all__ = ["DunningCaseEntity"]
