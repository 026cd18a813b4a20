from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    db_path: str = os.getenv("GRADETRACKR_DB_PATH", "gradetrackr.db")
    default_scale: str = os.getenv("GRADETRACKR_DEFAULT_SCALE", "traditional")
    round_point_averages: bool = _flag(os.getenv("GRADETRACKR_ROUND_POINT_AVERAGES", "1"))
    log_level: str = os.getenv("GRADETRACKR_LOG_LEVEL", "WARNING")

    appwrite_endpoint: str = os.getenv("APPWRITE_ENDPOINT", "")
    appwrite_project_id: str = os.getenv("APPWRITE_PROJECT_ID", "")
    appwrite_api_key: str = os.getenv("APPWRITE_API_KEY") or os.getenv("APPWRITE_FUNCTION_API_KEY", "")
    appwrite_database_id: str = os.getenv("APPWRITE_DATABASE_ID", "")

    appwrite_subjects_collection_id: str = os.getenv("APPWRITE_SUBJECTS_COLLECTION_ID", "subjects")
    appwrite_assessment_types_collection_id: str = os.getenv(
        "APPWRITE_ASSESSMENT_TYPES_COLLECTION_ID", "assessment_types"
    )
    appwrite_scores_collection_id: str = os.getenv("APPWRITE_SCORES_COLLECTION_ID", "scores")
    appwrite_final_grades_collection_id: str = os.getenv("APPWRITE_FINAL_GRADES_COLLECTION_ID", "final_grades")
    appwrite_year_settings_collection_id: str = os.getenv(
        "APPWRITE_YEAR_SETTINGS_COLLECTION_ID", "year_settings"
    )


settings = Settings()
