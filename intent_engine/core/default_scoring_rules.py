from typing import Any, Dict, List


# Rules read by the modifier-aware scoring engine (``intent_rules``)
DEFAULT_INTENT_RULES: List[Dict[str, Any]] = [
    {
        "rule_key": "base_page_view",
        "rule_type": "base_score",
        "event_type": "page_view",
        "points": 1,
        "description": "Any page view",
    },
    {
        "rule_key": "base_pricing_view",
        "rule_type": "base_score",
        "event_type": "pricing_view",
        "points": 4,
        "description": "Pricing page viewed",
    },
    {
        "rule_key": "base_contact_view",
        "rule_type": "base_score",
        "event_type": "contact_view",
        "points": 5,
        "description": "Contact page viewed",
    },
    {
        "rule_key": "base_case_study_view",
        "rule_type": "base_score",
        "event_type": "case_study_view",
        "points": 3,
        "description": "Case study viewed",
    },
    {
        "rule_key": "base_time_on_page",
        "rule_type": "base_score",
        "event_type": "time_on_page",
        "points": 2,
        "description": "Dwelled on a page for 30s or more",
    },
    {
        "rule_key": "base_scroll_depth",
        "rule_type": "base_score",
        "event_type": "scroll_depth",
        "points": 2,
        "description": "Scrolled past 60% of a page",
    },
    {
        "rule_key": "base_click",
        "rule_type": "base_score",
        "event_type": "click",
        "points": 3,
        "description": "Tracked CTA click",
    },
    {
        "rule_key": "base_link_click",
        "rule_type": "base_score",
        "event_type": "link_click",
        "points": 2,
        "description": "Outbound campaign link clicked",
    },
    {
        "rule_key": "base_form_start",
        "rule_type": "base_score",
        "event_type": "form_start",
        "points": 6,
        "description": "Started filling a form",
    },
    {
        "rule_key": "base_form_submit",
        "rule_type": "base_score",
        "event_type": "form_submit",
        "points": 10,
        "description": "Submitted a form",
    },
    {
        "rule_key": "base_return_visit",
        "rule_type": "base_score",
        "event_type": "return_visit",
        "points": 3,
        "description": "Came back within 30 days",
    },
    {
        "rule_key": "mod_email_campaign",
        "rule_type": "modifier",
        "modifier_condition": {"utm_medium": "email"},
        "points": 2,
        "description": "Arrived from an email campaign",
    },
    {
        "rule_key": "mod_high_reach",
        "rule_type": "modifier",
        "modifier_condition": {"reach_gte": 1000},
        "points": 3,
        "description": "Content with reach of 1000 or more",
    },
    {
        "rule_key": "mod_engaged_clicks",
        "rule_type": "modifier",
        "modifier_condition": {"clicks": True},
        "points": 0,
        "description": "Click engagement (one point per click, max 20)",
    },
]


# Flat per-event-type points read by the decay-based stage classifier
# (``stage_scoring_rules``)
DEFAULT_STAGE_RULES: List[Dict[str, Any]] = [
    {"rule_name": "Page View", "event_type": "page_view", "points": 1},
    {"rule_name": "Pricing View", "event_type": "pricing_view", "points": 5},
    {"rule_name": "Contact View", "event_type": "contact_view", "points": 5},
    {"rule_name": "Case Study View", "event_type": "case_study_view", "points": 3},
    {"rule_name": "Time On Page", "event_type": "time_on_page", "points": 1},
    {"rule_name": "Scroll Depth", "event_type": "scroll_depth", "points": 1},
    {"rule_name": "Click", "event_type": "click", "points": 2},
    {"rule_name": "Link Click", "event_type": "link_click", "points": 2},
    {"rule_name": "Form Start", "event_type": "form_start", "points": 6},
    {
        "rule_name": "Form Submit",
        "event_type": "form_submit",
        "points": 15,
        "is_hard_intent": True,
        "stage_hint": "M5",
    },
    {"rule_name": "Return Visit", "event_type": "return_visit", "points": 4},
    {"rule_name": "Identified", "event_type": "identify", "points": 3},
]


DEFAULT_QUALIFICATION_CONFIG: Dict[str, int] = {
    "m1_min": 0,
    "m2_min": 6,
    "m3_min": 16,
    "m4_min": 31,
    "m5_min": 46,
    "auto_push_threshold": 31,
    "decay_points_per_week": 1,
}
