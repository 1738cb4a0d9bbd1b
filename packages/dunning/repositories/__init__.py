from packages.dunning.repositories.dunning_case_repository import DunningCaseRepository

__all__ = ["DunningCaseRepository"]
