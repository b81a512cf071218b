from enum import Enum
from pydantic import BaseModel


class EventType(str, Enum):
    page_view = "page_view"
    pricing_view = "pricing_view"
    contact_view = "contact_view"
    case_study_view = "case_study_view"
    time_on_page = "time_on_page"
    scroll_depth = "scroll_depth"
    click = "click"
    link_click = "link_click"
    form_start = "form_start"
    form_submit = "form_submit"
    return_visit = "return_visit"
    identify = "identify"


class RuleType(str, Enum):
    base_score = "base_score"
    modifier = "modifier"


class ThresholdBand(str, Enum):
    cold = "cold"
    warm = "warm"
    hot = "hot"
    critical = "critical"


class SubjectType(str, Enum):
    lead = "lead"
    anonymous = "anonymous"
    identity = "identity"


class MarketingStage(str, Enum):
    M1 = "M1"
    M2 = "M2"
    M3 = "M3"
    M4 = "M4"
    M5 = "M5"


class SuccessResponse(BaseModel):
    """Generic success response base."""

    success: bool = True
