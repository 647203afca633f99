from __future__ import annotations


class EngineError(Exception):
    """Business-rule rejection raised before any record is mutated."""

    kind = "EngineError"
    status_code = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)


class NotFound(EngineError):
    kind = "NotFound"
    status_code = 404


class InsufficientEnergy(EngineError):
    kind = "InsufficientEnergy"


class InsufficientResources(EngineError):
    kind = "InsufficientResources"


class InsufficientCoins(EngineError):
    kind = "InsufficientCoins"


class InsufficientBuildPower(EngineError):
    kind = "InsufficientBuildPower"


class AlreadyUnlocked(EngineError):
    kind = "AlreadyUnlocked"


class AlreadyCompleted(EngineError):
    kind = "AlreadyCompleted"


class AlreadySkipped(EngineError):
    kind = "AlreadySkipped"


class LevelTooLow(EngineError):
    kind = "LevelTooLow"


class StageLocked(EngineError):
    kind = "StageLocked"


class DungeonLocked(EngineError):
    kind = "DungeonLocked"


class WeaponLocked(EngineError):
    kind = "WeaponLocked"


class InvalidEnemy(EngineError):
    kind = "InvalidEnemy"


class InvalidIndex(EngineError):
    kind = "InvalidIndex"


class NotCompleted(EngineError):
    kind = "NotCompleted"


class InvalidRequest(EngineError):
    kind = "InvalidRequest"
