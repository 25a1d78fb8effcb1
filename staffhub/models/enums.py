from enum import Enum


class ApplicationStatus(str, Enum):
    APPLIED = "applied"
    PENDING = "pending"
    SHORTLISTED = "shortlisted"
    INTERVIEW = "interview"
    ACCEPTED = "accepted"
    OFFER_CREATED = "offer_created"
    OFFER_ACCEPTED = "offer_accepted"
    ONBOARDED = "onboarded"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    DID_NOT_JOIN = "did_not_join"
    CANCELLED = "cancelled"


# Marker status used only by the history entry written before a hard delete
DELETED_STATUS = "deleted"


class WorkflowStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InstanceStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StepStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class RoleTag(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    HR_ADMIN = "hr_admin"
    CLIENT = "client"
    VENDOR = "vendor"


class StepAction(str, Enum):
    REVIEW = "review"
    APPROVE = "approve"
    REJECT = "reject"
    NOTIFY = "notify"
    ESCALATE = "escalate"
    INTERACT = "interact"


class ApplicationType(str, Enum):
    CLIENT_APPLIED = "client_applied"
    VENDOR_APPLIED = "vendor_applied"
    BOTH = "both"


class RateType(str, Enum):
    HOURLY = "hourly"
    FIXED = "fixed"


class NotificationType(str, Enum):
    NEW_APPLICATION = "new_application"
    APPLICATION_STATUS_CHANGE = "application_status_change"


class DecisionCategory(str, Enum):
    # client evaluating a vendor's resource
    TECHNICAL_SKILLS = "technical_skills"
    EXPERIENCE = "experience"
    RATE = "rate"
    AVAILABILITY = "availability"
    CULTURAL_FIT = "cultural_fit"
    TIMELINE = "timeline"
    BETTER_OPPORTUNITY = "better_opportunity"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    # vendor evaluating a client's offer
    RATE_ACCEPTABLE = "rate_acceptable"
    AVAILABILITY_MATCHES = "availability_matches"
    LOCATION_ACCEPTABLE = "location_acceptable"
    JOINING_DATE_OK = "joining_date_ok"
    PROJECT_SCOPE_GOOD = "project_scope_good"
    CLIENT_REPUTATION = "client_reputation"
    RATE_TOO_LOW = "rate_too_low"
    AVAILABILITY_CONFLICT = "availability_conflict"
    LOCATION_ISSUE = "location_issue"
    JOINING_DATE_CONFLICT = "joining_date_conflict"
    PROJECT_SCOPE_ISSUE = "project_scope_issue"
    CLIENT_REPUTATION_CONCERN = "client_reputation_concern"
    OTHER = "other"


class DecisionCriterion(str, Enum):
    TECHNICAL_SKILLS = "technical_skills"
    EXPERIENCE_LEVEL = "experience_level"
    RATE_ALIGNMENT = "rate_alignment"
    AVAILABILITY = "availability"
    CULTURAL_FIT = "cultural_fit"
    COMMUNICATION = "communication"
    PORTFOLIO = "portfolio"
    REFERENCES = "references"
    CERTIFICATIONS = "certifications"
    RATE_EVALUATION = "rate_evaluation"
    AVAILABILITY_CHECK = "availability_check"
    LOCATION_ASSESSMENT = "location_assessment"
    JOINING_DATE_REVIEW = "joining_date_review"
    PROJECT_SCOPE_ANALYSIS = "project_scope_analysis"
    CLIENT_REPUTATION_CHECK = "client_reputation_check"
    CONTRACT_TERMS_REVIEW = "contract_terms_review"
    RESOURCE_AVAILABILITY = "resource_availability"
    FINANCIAL_VIABILITY = "financial_viability"
    OTHER = "other"
