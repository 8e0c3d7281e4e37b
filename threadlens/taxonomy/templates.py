"""
Built-in industry taxonomy templates.

Every industry template starts from the default template and appends
its own topics, roles and severity rules.
"""

from typing import Callable

from threadlens.models.taxonomy import (
    CategoryDefinition,
    RoleDefinition,
    SeverityRule,
    TaxonomyData,
    TopicDefinition,
    ValueDefinition,
)

DEFAULT_INDUSTRY = "default"


def _value(key: str, display_name: str, template: str, *triggers: str) -> ValueDefinition:
    return ValueDefinition(
        key=key, display_name=display_name, template=template, trigger_patterns=list(triggers)
    )


def _topic(key: str, display_name: str, *keywords: str) -> TopicDefinition:
    return TopicDefinition(key=key, display_name=display_name, keywords=list(keywords))


def _role(key: str, display_name: str, *keywords: str) -> RoleDefinition:
    return RoleDefinition(key=key, display_name=display_name, keywords=list(keywords))


def _rule(category: str, value: str, condition: str, severity: str) -> SeverityRule:
    return SeverityRule(category=category, value=value, condition=condition, severity=severity)


def _default_categories() -> list[CategoryDefinition]:
    return [
        CategoryDefinition(
            key="QUESTION_STATUS",
            display_name="Question Status",
            description="Tracks whether questions in the conversation were addressed",
            values=[
                _value("unanswered", "Unanswered", "{role} inquiry regarding {topic} was not addressed"),
                _value("repeated_unanswered", "Repeatedly Unanswered", "{role} asked about {topic} multiple times without response"),
                _value("partially_answered", "Partially Answered", "{role} inquiry about {topic} was partially addressed"),
                _value("deflected", "Deflected", "{role} question about {topic} was deflected"),
            ],
        ),
        CategoryDefinition(
            key="TENSION_SIGNAL",
            display_name="Tension Signal",
            description="Identifies moments of conflict or frustration",
            values=[
                _value("urgency_expressed", "Urgency Expressed", "{role} expressed urgency regarding {topic}"),
                _value("frustration_expressed", "Frustration Expressed", "{role} expressed frustration regarding {topic}"),
                _value("repetition_required", "Repetition Required", "{role} had to repeat themselves regarding {topic}"),
                _value("escalation_threatened", "Escalation Threatened", "{role} threatened escalation regarding {topic}"),
                _value("escalation_occurred", "Escalation Occurred", "Escalation occurred regarding {topic}"),
                _value("dismissive_response", "Dismissive Response", "{role} gave a dismissive response regarding {topic}"),
                _value("tension_detected", "Tension Detected", "Tension detected regarding {topic}"),
            ],
        ),
        CategoryDefinition(
            key="COMMITMENT",
            display_name="Commitment",
            description="Tracks promises and commitments made",
            values=[
                _value("with_deadline", "With Deadline", "{role} committed to {topic} with specific deadline"),
                _value("vague_timeline", "Vague Timeline", "{role} committed to {topic} without specific deadline"),
                _value("no_timeline", "No Timeline", "{role} committed to {topic} with no timeline"),
                _value("missed", "Missed", "{role} missed commitment regarding {topic}"),
            ],
        ),
        CategoryDefinition(
            key="RESPONSE_PATTERN",
            display_name="Response Pattern",
            description="Characterizes response behaviors",
            values=[
                _value("delayed", "Delayed Response", "Delayed response regarding {topic}"),
                _value("dismissive", "Dismissive", "Dismissive response regarding {topic}"),
                _value("low_responsiveness", "Low Responsiveness", "Low overall responsiveness in conversation"),
                _value("low_clarity", "Low Clarity", "Low clarity in communication"),
            ],
        ),
        CategoryDefinition(
            key="RISK_INDICATOR",
            display_name="Risk Indicator",
            description="Flags potential risks in the conversation",
            values=[
                _value(
                    "legal_language", "Legal Language", "Legal language detected regarding {topic}",
                    "lawyer", "attorney", "lawsuit", "legal action", "litigation", "sue", "breach of contract",
                ),
                _value(
                    "regulatory_mention", "Regulatory Mention", "Regulatory mention regarding {topic}",
                    "regulator", "regulatory", "gdpr", "hipaa", "ombudsman", "file a complaint",
                ),
                _value(
                    "financial_dispute", "Financial Dispute", "Financial dispute regarding {topic}",
                    "chargeback", "dispute the charge", "overcharged", "double charged", "billing error",
                ),
                _value(
                    "service_failure", "Service Failure", "Service failure regarding {topic}",
                    "outage", "service is down", "stopped working", "data loss", "not working",
                ),
            ],
        ),
        CategoryDefinition(
            key="DECISION",
            display_name="Decision",
            description="Tracks decisions made in the conversation",
            values=[
                _value("made", "Decision Made", "Decision made regarding {topic}"),
                _value("pending", "Decision Pending", "Decision pending regarding {topic}"),
                _value("reversed", "Decision Reversed", "Decision reversed regarding {topic}"),
            ],
        ),
        CategoryDefinition(
            key="ACTION_ITEM",
            display_name="Action Item",
            description="Tracks tasks and follow-ups",
            values=[
                _value("assigned", "Assigned", "Action assigned to {role} regarding {topic}"),
                _value("completed", "Completed", "Action completed by {role} regarding {topic}"),
                _value("overdue", "Overdue", "Action overdue for {role} regarding {topic}"),
            ],
        ),
        CategoryDefinition(
            key="MISALIGNMENT",
            display_name="Misalignment",
            description="Identifies misunderstandings or conflicting expectations",
            values=[
                _value("detected", "Misalignment Detected", "Misalignment detected regarding {topic}"),
                _value("low_alignment_score", "Low Alignment Score", "Low alignment score in conversation"),
            ],
        ),
    ]


def default_template() -> TaxonomyData:
    """The generic taxonomy every industry template builds on."""
    return TaxonomyData(
        categories=_default_categories(),
        topics=[
            _topic("warranty", "Warranty", "warranty", "guarantee", "coverage", "repair", "replacement"),
            _topic("pricing", "Pricing", "price", "cost", "fee", "charge", "rate", "discount", "quote"),
            _topic("delivery", "Delivery", "delivery", "shipping", "ship", "arrive", "tracking", "shipment"),
            _topic("timeline", "Timeline", "when", "deadline", "date", "schedule", "timeline", "by friday", "asap", "eta"),
            _topic("billing", "Billing", "invoice", "bill", "payment", "refund", "credit", "charge"),
            _topic("technical_issue", "Technical Issue", "error", "bug", "broken", "not working", "issue", "problem", "crash"),
            _topic("contract", "Contract", "contract", "agreement", "terms", "renewal", "cancellation"),
            _topic("service", "Service", "service", "support", "help", "assistance"),
            _topic("product", "Product", "product", "item", "order", "purchase"),
            _topic("policy", "Policy", "policy", "rule", "procedure", "compliance"),
            _topic("general", "General"),
        ],
        roles=[
            _role("customer", "Customer", "customer", "client", "buyer", "user"),
            _role("representative", "Representative", "rep", "agent", "support", "csr", "service"),
            _role("manager", "Manager", "manager", "supervisor", "lead", "director"),
            _role("vendor", "Vendor", "vendor", "supplier", "partner"),
            _role("internal_team_member", "Internal Team Member", "team", "colleague"),
            _role("unknown", "Unknown"),
        ],
        severity_rules=[],
    )


def _extend(
    topics: list[TopicDefinition],
    roles: list[RoleDefinition],
    rules: list[SeverityRule],
) -> TaxonomyData:
    template = default_template()
    # Industry entries replace default entries with the same key
    topic_keys = {t.key for t in topics}
    role_keys = {r.key for r in roles}
    template.topics = [t for t in template.topics if t.key not in topic_keys] + topics
    template.roles = [r for r in template.roles if r.key not in role_keys] + roles
    template.severity_rules.extend(rules)
    return template


def legal_template() -> TaxonomyData:
    return _extend(
        topics=[
            _topic("discovery", "Discovery", "discovery", "subpoena", "deposition", "interrogatories", "document request"),
            _topic("privilege", "Privilege", "privilege", "confidential", "attorney-client", "work product"),
            _topic("deadline_court", "Court Deadline", "filing deadline", "court date", "hearing", "motion due", "statute of limitations"),
            _topic("settlement", "Settlement", "settlement", "offer", "mediation", "arbitration", "negotiate"),
            _topic("conflict_check", "Conflict Check", "conflict", "conflict check", "adverse party", "representation"),
            _topic("case_status", "Case Status", "case", "matter", "docket", "filing", "pleading"),
        ],
        roles=[
            _role("attorney", "Attorney", "esq", "attorney", "counsel", "lawyer", "jd"),
            _role("paralegal", "Paralegal", "paralegal", "legal assistant"),
            _role("client", "Client", "client"),
            _role("opposing_counsel", "Opposing Counsel", "opposing", "plaintiff counsel", "defendant counsel"),
            _role("court", "Court", "court", "judge", "clerk", "magistrate"),
        ],
        rules=[
            _rule("QUESTION_STATUS", "unanswered", "topic == 'deadline_court'", "critical"),
            _rule("ACTION_ITEM", "overdue", "topic == 'deadline_court'", "critical"),
        ],
    )


def healthcare_template() -> TaxonomyData:
    return _extend(
        topics=[
            _topic("patient_care", "Patient Care", "patient", "treatment", "diagnosis", "symptoms", "medication", "prescription", "care plan"),
            _topic("hipaa", "HIPAA/Privacy", "hipaa", "privacy", "phi", "protected health", "authorization", "consent", "release"),
            _topic("insurance_auth", "Insurance/Authorization", "prior auth", "authorization", "insurance", "coverage", "pre-approval", "denial", "appeal"),
            _topic("referral", "Referral", "referral", "refer", "specialist", "consult", "consultation"),
            _topic("lab_results", "Lab Results", "lab", "results", "test", "bloodwork", "imaging", "scan", "mri", "ct", "xray"),
            _topic("appointment", "Appointment", "appointment", "schedule", "visit", "follow-up", "checkup"),
            _topic("medication", "Medication", "medication", "prescription", "rx", "refill", "dosage", "drug"),
        ],
        roles=[
            _role("physician", "Physician", "dr", "doctor", "md", "do", "physician"),
            _role("nurse", "Nurse", "rn", "nurse", "lpn", "np", "nurse practitioner"),
            _role("patient", "Patient", "patient"),
            _role("insurance_rep", "Insurance Rep", "insurance", "claims", "adjuster", "payer"),
            _role("medical_assistant", "Medical Assistant", "ma", "medical assistant", "cma"),
            _role("pharmacist", "Pharmacist", "pharmacist", "pharmacy", "rph"),
        ],
        rules=[
            _rule("QUESTION_STATUS", "unanswered", "topic == 'patient_care'", "high"),
            _rule("RISK_INDICATOR", "*", "topic == 'hipaa'", "critical"),
        ],
    )


def finance_template() -> TaxonomyData:
    return _extend(
        topics=[
            _topic("transaction", "Transaction", "transaction", "transfer", "wire", "ach", "payment", "deposit", "withdrawal"),
            _topic("compliance_reg", "Regulatory Compliance", "compliance", "sec", "finra", "aml", "kyc", "regulation", "audit", "sox"),
            _topic("account", "Account", "account", "balance", "statement", "portfolio", "holdings"),
            _topic("risk_exposure", "Risk/Exposure", "risk", "exposure", "hedge", "margin", "collateral", "leverage"),
            _topic("fraud", "Fraud", "fraud", "suspicious", "unauthorized", "dispute", "chargeback", "identity theft"),
            _topic("investment", "Investment", "investment", "portfolio", "stock", "bond", "fund", "etf", "retirement", "401k", "ira"),
            _topic("loan", "Loan/Credit", "loan", "credit", "mortgage", "interest rate", "principal", "amortization"),
        ],
        roles=[
            _role("advisor", "Financial Advisor", "advisor", "banker", "relationship manager", "wealth manager"),
            _role("compliance_officer", "Compliance Officer", "compliance", "officer", "cco"),
            _role("client", "Client", "client", "customer", "account holder", "investor"),
            _role("analyst", "Analyst", "analyst", "research"),
            _role("trader", "Trader", "trader", "trading desk"),
        ],
        rules=[
            _rule("RISK_INDICATOR", "*", "topic == 'fraud'", "critical"),
            _rule("RISK_INDICATOR", "*", "topic == 'compliance_reg'", "critical"),
            _rule("QUESTION_STATUS", "unanswered", "topic == 'transaction'", "high"),
        ],
    )


def retail_template() -> TaxonomyData:
    return _extend(
        topics=[
            _topic("order_status", "Order Status", "order", "tracking", "shipment", "delivery", "shipped", "delivered"),
            _topic("return", "Return/Exchange", "return", "exchange", "refund", "rma", "store credit"),
            _topic("inventory", "Inventory", "stock", "inventory", "available", "backorder", "out of stock", "restock"),
            _topic("promotion", "Promotion", "coupon", "discount", "promo", "sale", "deal", "code"),
            _topic("loyalty", "Loyalty Program", "loyalty", "points", "rewards", "member", "tier"),
            _topic("product_inquiry", "Product Inquiry", "product", "item", "size", "color", "specs", "dimensions"),
        ],
        roles=[
            _role("customer", "Customer", "customer", "shopper", "buyer"),
            _role("sales_rep", "Sales Rep", "sales", "rep", "associate"),
            _role("support", "Customer Support", "support", "service", "help desk"),
            _role("store_manager", "Store Manager", "manager", "store manager"),
        ],
        rules=[
            _rule("TENSION_SIGNAL", "escalation_threatened", "topic == 'return'", "high"),
        ],
    )


def technology_template() -> TaxonomyData:
    return _extend(
        topics=[
            _topic("bug", "Bug/Defect", "bug", "defect", "error", "crash", "broken", "issue", "regression"),
            _topic("feature_request", "Feature Request", "feature", "enhancement", "request", "wishlist", "improvement"),
            _topic("outage", "Outage/Incident", "outage", "down", "incident", "unavailable", "degraded", "p1", "sev1"),
            _topic("security", "Security", "security", "vulnerability", "breach", "cve", "patch", "exploit"),
            _topic("integration", "Integration", "api", "integration", "webhook", "connect", "sync", "endpoint"),
            _topic("deployment", "Deployment", "deploy", "release", "rollout", "update", "version", "ci/cd"),
            _topic("performance", "Performance", "performance", "slow", "latency", "timeout", "optimization"),
        ],
        roles=[
            _role("developer", "Developer", "dev", "developer", "engineer", "swe"),
            _role("devops", "DevOps/SRE", "devops", "sre", "ops", "infrastructure"),
            _role("product", "Product", "pm", "product manager", "product owner", "po"),
            _role("qa", "QA", "qa", "test", "tester", "quality"),
            _role("support_tech", "Tech Support", "support", "helpdesk", "tier 1", "tier 2"),
        ],
        rules=[
            _rule("TENSION_SIGNAL", "*", "topic == 'outage'", "critical"),
            _rule("RISK_INDICATOR", "*", "topic == 'security'", "critical"),
        ],
    )


class IndustryTemplates:
    """Registry of the built-in industry templates."""

    BUILDERS: dict[str, Callable[[], TaxonomyData]] = {
        DEFAULT_INDUSTRY: default_template,
        "legal": legal_template,
        "healthcare": healthcare_template,
        "finance": finance_template,
        "retail": retail_template,
        "technology": technology_template,
    }

    @classmethod
    def get_template(cls, industry: str | None) -> TaxonomyData:
        """
        Build a fresh template for an industry.

        Args:
            industry: Industry name, case-insensitive

        Returns:
            A new TaxonomyData; the default template for unknown industries.
        """
        key = (industry or DEFAULT_INDUSTRY).strip().lower()
        return cls.BUILDERS.get(key, default_template)()

    @classmethod
    def available_industries(cls) -> list[str]:
        """Industry names with a built-in template."""
        return list(cls.BUILDERS)

    @classmethod
    def is_known(cls, industry: str | None) -> bool:
        """Check whether an industry has its own template."""
        return (industry or "").strip().lower() in cls.BUILDERS
