from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["none", "mild", "moderate", "high", "critical"]
Imminence = Literal["not_applicable", "chronic", "subacute", "urgent", "emergency"]
RiskDomain = Literal["self", "others", "dependent_at_risk", "victimisation"]
EvidenceGrade = Literal["strong", "moderate", "weak", "consensus", "none"]
CrisisResourceType = Literal["emergency_number", "crisis_line", "text_line", "chat_service", "support_service"]
CrisisResourceKind = Literal["helpline", "reporting_portal", "directory", "self_help_site"]
CrisisResourcePriorityTier = Literal[
    "primary_national_crisis",
    "secondary_national_crisis",
    "specialist_issue_crisis",
    "population_specific_crisis",
    "support_info_and_advocacy",
    "support_directory_or_tool",
    "emergency_services",
]
SafeguardingUrgency = Literal["routine", "prompt", "urgent", "emergency"]

SEVERITY_SCORES: dict[str, int] = {
    "none": 0,
    "mild": 1,
    "moderate": 2,
    "high": 3,
    "critical": 4,
}

IMMINENCE_SCORES: dict[str, int] = {
    "not_applicable": 0,
    "chronic": 1,
    "subacute": 2,
    "urgent": 3,
    "emergency": 4,
}


class _RequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _ResponseModel(BaseModel):
    # Newer API versions may add fields; keep them instead of failing.
    model_config = ConfigDict(extra="allow")


# Requests


class Message(_RequestModel):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: str | None = None


class EvaluateConfig(_RequestModel):
    user_country: str | None = None
    locale: str | None = None
    user_age_band: Literal["adult", "minor", "unknown"] | None = None
    policy_id: str | None = None
    dry_run: bool | None = None
    return_assistant_reply: bool | None = None
    assistant_safety_mode: Literal["template", "generate"] | None = None
    use_multiple_judges: bool | None = None
    models: list[str] | None = None
    conversation_id: str | None = None
    end_user_id: str | None = None


class ScreenConfig(_RequestModel):
    debug: bool | None = None


# Responses


class CrisisResource(_ResponseModel):
    type: CrisisResourceType
    name: str
    phone: str | None = None
    text_instructions: str | None = None
    chat_url: str | None = None
    website_url: str | None = None
    availability: str | None = None
    is_24_7: bool | None = None
    languages: list[str] | None = None
    description: str | None = None
    resource_kind: CrisisResourceKind | None = None
    service_scope: list[str] | None = None
    population_served: list[str] | None = None
    priority_tier: CrisisResourcePriorityTier | None = None
    source: Literal["database", "web_search"] | None = None


class PresentationModifiers(_ResponseModel):
    psychotic_features: bool | None = None
    substance_involved: bool | None = None
    cognitive_impairment: bool | None = None
    personality_features: bool | None = None
    acute_decompensation: bool | None = None
    self_neglect_severe: bool | None = None


class SafeguardingFlags(_ResponseModel):
    child_at_risk: bool | None = None
    adult_at_risk: bool | None = None
    duty_to_warn_others: bool | None = None
    mandatory_reporting_possible: bool | None = None


class ProtectiveFactorsInfo(_ResponseModel):
    protective_factors: list[str] | None = None
    protective_factor_strength: Literal["weak", "moderate", "strong"] | None = None


class ThirdPartyThreat(_ResponseModel):
    present: bool
    identifiable_victim: bool
    confidence: float
    rationale: str
    evidence_grade: EvidenceGrade | None = None


class IntimatePartnerViolence(_ResponseModel):
    risk_level: Literal["standard", "elevated", "severe", "extreme"]
    confidence: float
    strangulation_history: bool | None = None
    escalation_pattern: bool | None = None
    evidence_grade: EvidenceGrade | None = None


class ChildSafeguarding(_ResponseModel):
    urgency: SafeguardingUrgency
    confidence: float
    basic_needs_unmet: bool | None = None
    immediate_danger: bool | None = None
    evidence_grade: EvidenceGrade | None = None


class VulnerableAdultSafeguarding(_ResponseModel):
    urgency: SafeguardingUrgency
    confidence: float
    evidence_grade: EvidenceGrade | None = None


class AnimalCrueltyIndicator(_ResponseModel):
    present: bool
    confidence: float
    evidence_grade: EvidenceGrade | None = None


class LegalFlags(_ResponseModel):
    third_party_threat: ThirdPartyThreat | None = None
    intimate_partner_violence: IntimatePartnerViolence | None = None
    child_safeguarding: ChildSafeguarding | None = None
    vulnerable_adult_safeguarding: VulnerableAdultSafeguarding | None = None
    animal_cruelty_indicator: AnimalCrueltyIndicator | None = None


class GlobalAssessment(_ResponseModel):
    overall_severity: Severity
    overall_imminence: Imminence
    primary_concerns: list[str] = Field(default_factory=list)
    language: str | None = None
    locale: str | None = None


class DomainAssessment(_ResponseModel):
    """One per-domain assessment; the subtype field present depends on ``domain``."""

    domain: RiskDomain
    severity: Severity
    imminence: Imminence
    confidence: float
    risk_features: list[str] = Field(default_factory=list)
    risk_types: list[str] | None = None
    reasoning: str | None = None
    self_subtype: Literal["suicidal_or_self_injury", "self_neglect", "other"] | None = None
    dependent_subtype: Literal["child", "adult_at_risk", "animal_or_other"] | None = None
    victimisation_subtype: (
        Literal[
            "IPV_intimate_partner",
            "family_non_intimate",
            "trafficking_exploitation",
            "community_violence",
            "institutional_abuse",
            "other",
        ]
        | None
    ) = None


class RecommendedReply(_ResponseModel):
    content: str
    source: Literal["template", "llm_generated", "llm_validated_candidate"]
    notes: str | None = None


class CopingRecommendation(_ResponseModel):
    category: Literal[
        "self_soothing",
        "social_support",
        "professional_support",
        "safety_planning",
        "means_safety",
    ]
    evidence_grade: EvidenceGrade


class ResponseMetadata(_ResponseModel):
    access_level: Literal["unauthenticated", "authenticated", "admin"] | None = None
    is_admin: bool | None = None
    messages_truncated: bool | None = None
    messages_original_count: int | None = None
    messages_kept_count: int | None = None
    features_available: list[str] | None = None
    input_format: Literal["structured", "text_blob"] | None = None
    api_version: str = "v1"


class EvaluateResponse(_ResponseModel):
    domains: list[DomainAssessment] = Field(default_factory=list)
    global_: GlobalAssessment = Field(alias="global")
    legal_flags: LegalFlags | None = None
    presentation_modifiers: PresentationModifiers | None = None
    safeguarding_flags: SafeguardingFlags | None = None
    protective_factors_info: ProtectiveFactorsInfo | None = None
    confidence: float
    agreement: float | None = None
    crisis_resources: list[CrisisResource] = Field(default_factory=list)
    recommended_reply: RecommendedReply | None = None
    coping_recommendations: list[CopingRecommendation] | None = None
    metadata: ResponseMetadata | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ScreenResources(_ResponseModel):
    primary: CrisisResource
    secondary: list[CrisisResource] = Field(default_factory=list)


class ScreenResponse(_ResponseModel):
    referral_required: bool
    cssrs_level: int | None = None
    crisis_type: str | None = None
    show_resources: bool | None = None
    resources: ScreenResources | None = None
    request_id: str | None = None
    timestamp: str | None = None


# Helpers

_SPEAKER_DOMAINS = frozenset({"self", "victimisation"})
_THIRD_PARTY_DOMAINS = frozenset({"others", "dependent_at_risk"})


def calculate_speaker_severity(response: EvaluateResponse) -> Severity:
    """Highest severity among domains where the speaker is the person at risk."""
    levels = [item.severity for item in response.domains if item.domain in _SPEAKER_DOMAINS]
    if not levels:
        return "none"
    return max(levels, key=SEVERITY_SCORES.__getitem__)


def calculate_speaker_imminence(response: EvaluateResponse) -> Imminence:
    levels = [item.imminence for item in response.domains if item.domain in _SPEAKER_DOMAINS]
    if not levels:
        return "not_applicable"
    return max(levels, key=IMMINENCE_SCORES.__getitem__)


def has_third_party_risk(response: EvaluateResponse) -> bool:
    for item in response.domains:
        if item.domain in _THIRD_PARTY_DOMAINS and SEVERITY_SCORES[item.severity] > 0:
            return True
    threat = response.legal_flags.third_party_threat if response.legal_flags else None
    return bool(threat and threat.present)
