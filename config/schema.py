from pydantic import BaseModel, Field
from enum import Enum


class AcquisitionProvider(str, Enum):
    GEMINI = "gemini"
    LOCAL = "local"


# ─── CANDIDATE ACQUISITION ───

class AcquisitionConfig(BaseModel):
    """Where draft schedules come from and how long we wait for them.

    The API key itself never lives in the YAML file; only the name of the
    environment variable holding it.
    """
    # Default source for `generate` without --candidate/--offline
    provider: AcquisitionProvider = Field(AcquisitionProvider.GEMINI,
        description="Candidate source: gemini or local (CP-SAT)")
    # Gemini model name
    model: str = Field("gemini-2.5-flash",
        description="Gemini model used for draft schedules")
    # Environment variable holding the API key
    api_key_env: str = Field("GOOGLE_API_KEY",
        description="Environment variable with the Gemini API key")
    # Hard wall-clock limit for one acquisition call
    timeout_seconds: int = Field(120, ge=10, le=600,
        description="Acquisition timeout (seconds)")
    # Sampling temperature
    temperature: float = Field(0.3, ge=0.0, le=1.0,
        description="Sampling temperature")


# ─── PLANNING POLICY ───

class PlanningConfig(BaseModel):
    """Obligation targets derived from the request."""
    # Used when a homework item has no duration
    default_homework_minutes: int = Field(60, ge=5, le=240,
        description="Default homework duration (minutes)")
    # Minimum sessions spread over a subject's topics when it has a test
    test_subject_min_sessions: int = Field(8, ge=1, le=40,
        description="Minimum sessions per tested subject")
    # A test within this many days of the window start gets one extra session per topic
    final_week_days: int = Field(7, ge=1, le=30,
        description="Days before a test that count as final week")
    # Upper bound on sessions per topic
    max_topic_sessions: int = Field(8, ge=1, le=30,
        description="Max sessions per topic")
    # Floor for focus (high-priority) topics
    focus_session_floor: int = Field(4, ge=1, le=30,
        description="Minimum sessions for focus topics")


# ─── SOLVER ───

class SolverConfig(BaseModel):
    """Local CP-SAT candidate source and its objective weights."""
    # Time limit for the solver in seconds
    time_limit_seconds: int = Field(10, ge=1, le=600,
        description="Solver time limit (seconds)")
    # CPU cores (0 = use all)
    num_workers: int = Field(0, ge=0,
        description="CPU cores (0=automatic)")
    # Weight per placed homework session
    weight_homework: int = Field(100, ge=0,
        description="Weight: place homework before its due date")
    # Weight per placed topic session
    weight_topic_session: int = Field(20, ge=0,
        description="Weight: meet topic session targets")
    # Extra weight for focus topics
    weight_focus: int = Field(10, ge=0,
        description="Weight: prefer focus topics")
    # Bonus for a focus topic placed in the best peak window
    weight_peak_window: int = Field(5, ge=0,
        description="Weight: focus topics in the best time window")


# ─── OUTPUT + LOGGING ───

class OutputConfig(BaseModel):
    # Directory for schedules, ledgers and exports
    directory: str = Field("output",
        description="Output directory")


class LoggingConfig(BaseModel):
    # Root log level (DEBUG, INFO, WARNING, ERROR)
    level: str = Field("INFO",
        description="Log level")


# ─── FULL CONFIG ───

class PlannerConfig(BaseModel):
    """Complete planner configuration."""
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)
    planning: PlanningConfig = Field(default_factory=PlanningConfig)
    solver: SolverConfig = Field(default_factory=SolverConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
