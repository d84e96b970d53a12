from pydantic import BaseModel, ValidationError, field_validator

class SettingsSchema(BaseModel):
    db_path: str = "pulse.db"
    log_level: str = "INFO"
    default_workout_name: str = "Custom Workout"
    seed_defaults: bool = True
    challenge_days: int = 7

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value}")
        return value

    @field_validator("challenge_days")
    @classmethod
    def _positive_days(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("challenge_days must be positive")
        return value

def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
