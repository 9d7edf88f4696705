"""Declarative schemas for the CRM data-entry dialogs (lead, deal, opportunity)."""

import os
from typing import Dict, List, Tuple

from form_engine.models import (
    Condition,
    FieldDefinition,
    FormSchema,
    Option,
    RepeatableSpec,
    ScrollThresholds,
    SectionDefinition,
)


def _options(*values: str) -> List[Option]:
    return [Option(value=value, label=value) for value in values]


def _labelled(*pairs: Tuple[str, str]) -> List[Option]:
    return [Option(value=value, label=label) for value, label in pairs]


SALUTATIONS = _options("Mr", "Mrs", "Ms", "Dr", "Prof")
BUSINESS_UNITS = _options("Cloud", "KPO")
COUNTRIES = _options("India", "USA", "UK", "Canada", "Australia")
EMPLOYEE_COUNTS = _options("1-4", "5-9", "10-19", "20-49", "50-99", "100-249", "250-499")
REVENUE_SIZES = _labelled(
    ("<$1M", "<$1M"),
    ("$1M-$10M", "$1M - $10M"),
    ("$10M-$50M", "$10M - $50M"),
    ("$50M-$100M", "$50M - $100M"),
    ("$100M-$500M", "$100M - $500M"),
    ("$500M-$1B", "$500M - $1B"),
    ("$1B+", "$1B+"),
)
INDUSTRIES = _options("Technology", "Healthcare", "Finance", "Manufacturing", "Retail", "Education", "Other")
COMPANY_TYPES = _options("Pvt Ltd", "LLP", "Govt", "NGO", "Other")
CUSTOMER_SEGMENTS = _options("SMB", "Mid-Market", "Enterprise")
DECISION_TIMELINES = _labelled(
    ("Immediate", "Immediate"),
    ("<1 month", "<1 month"),
    ("1-3 months", "1-3 months"),
    ("3-6 months", "3-6 months"),
    ("6+ months", "6+ months"),
)
LEAD_STATUSES = _options("MQL", "SQL", "Disqualified")
PIPELINES = _options("Lead/KPO", "Lead/Cloud", "Lead/IT", "Lead/Partner")
PIPELINE_STAGES = _options(
    "Open",
    "F_1",
    "F_2",
    "F_3",
    "F_4",
    "Contacted",
    "No Response",
    "Lost",
    "Presales Scheduled",
    "Presales Done",
    "Awaiting BOM",
)
LEAD_OWNERS = _labelled(("owner1", "Alice Johnson"), ("owner2", "Bob Smith"), ("owner3", "Carol Davis"))
LEAD_GENERATORS = _labelled(("user1", "John Doe"), ("user2", "Jane Smith"), ("user3", "Mike Johnson"))
LEAD_TYPES = _options("Competitor", "Customer", "Partner", "Reseller", "Other")
ACTIVITY_TYPES = _options("Phone Call", "Demo", "Personal Visit", "Presales Call", "Other")

DEAL_STAGES = _options("Prospect", "Qualification", "Proposal", "Negotiation", "Closed Won", "Closed Lost")
DEAL_TYPES = _options("New", "Existing", "Renewal", "Upgrade")
DEAL_STATUSES = _options("Open", "Closed", "On Hold", "Cancelled")
REVENUE_TYPES = _options("One-time", "Recurring", "Hybrid")
HEALTH_INDICATORS = _options("Green", "Yellow", "Red")

PRODUCT_CATALOG: Dict[str, List[Option]] = {
    "Cloud": _labelled(
        ("acronis-backup", "Acronis backup"),
        ("aws", "AWS"),
        ("cdn", "CDN"),
        ("cyber-security", "Cyber security"),
        ("dedicated-server", "Dedicated server"),
        ("google-cloud", "Google cloud"),
        ("hp-green-lake", "HP green lake"),
        ("m365", "M365"),
        ("managed-services", "Managed services"),
        ("microsoft-azure", "Microsoft azure"),
        ("one-time-setup", "One time set up charges"),
        ("oracle-cloud", "Oracle cloud"),
        ("private-cloud", "Private cloud"),
        ("siem", "SIEM"),
        ("single-sign-on", "Single sign-on"),
        ("tally-on-cloud", "Tally on cloud"),
        ("vapt", "VAPT"),
        ("vps", "VPS"),
    ),
    "KPO": _labelled(
        ("back-office-logistics", "Back-office services - Logistics & transportation"),
        ("back-office-recruitment", "Back-office services - Recruitment & staffing"),
    ),
    "Others": _labelled(
        ("ap-ar-automation", "AP AR automation"),
        ("bookkeeping-services", "Bookkeeping services"),
        ("hedge-fund-services", "Hedge fund services"),
        ("ms-licences", "MS licences"),
        ("other", "Other"),
    ),
}

LINE_ITEM_TEMPLATE = {
    "id": 1,
    "productService": "",
    "quantity": 1,
    "price": "",
    "currency": "USD",
    "discount": 0,
    "totalAmount": 0,
}


def _scroll_thresholds() -> ScrollThresholds:
    debounce_ms = os.getenv("FORM_SCROLL_DEBOUNCE_MS")
    if not debounce_ms:
        return ScrollThresholds()
    return ScrollThresholds(debounce_ms=int(debounce_ms))


def _lead_fields() -> List[FieldDefinition]:
    company = [
        FieldDefinition(key="companyName", label="Company name", section="companyInfo", required=True, searchable=True),
        FieldDefinition(key="companyPhone", label="Company phone", section="companyInfo", required=True, searchable=True),
        FieldDefinition(
            key="companyEmail", label="Company email", section="companyInfo", kind="email", required=True, searchable=True
        ),
        FieldDefinition(
            key="companyAddress", label="Company address", section="companyInfo", kind="textarea", required=True, searchable=True
        ),
        FieldDefinition(
            key="companyCountry",
            label="Company country",
            section="companyInfo",
            kind="select",
            required=True,
            searchable=True,
            static_options=COUNTRIES,
        ),
        FieldDefinition(key="companyState", label="State", section="companyInfo", searchable=True),
        FieldDefinition(key="companyCity", label="City", section="companyInfo", searchable=True),
        FieldDefinition(key="zipCode", label="Zip code", section="companyInfo", searchable=True),
        FieldDefinition(key="location", label="Location", section="companyInfo", searchable=True),
        FieldDefinition(
            key="companyEmployees",
            label="Employees",
            section="companyInfo",
            kind="select",
            searchable=True,
            static_options=EMPLOYEE_COUNTS,
        ),
        FieldDefinition(
            key="companyRevenue", label="Revenue", section="companyInfo", kind="select", searchable=True, static_options=REVENUE_SIZES
        ),
        FieldDefinition(
            key="industry", label="Industry", section="companyInfo", kind="select", searchable=True, static_options=INDUSTRIES
        ),
        FieldDefinition(key="companyWebsite", label="Company website", section="companyInfo", searchable=True),
        FieldDefinition(
            key="companyType", label="Company type", section="companyInfo", kind="select", searchable=True, static_options=COMPANY_TYPES
        ),
        FieldDefinition(key="gstTaxId", label="GST / Tax ID", section="companyInfo", searchable=True),
        FieldDefinition(key="ownerFirstName", label="Owner first name", section="companyInfo"),
        FieldDefinition(key="ownerLastName", label="Owner last name", section="companyInfo"),
    ]
    customer = [
        FieldDefinition(
            key="salutation",
            label="Salutation",
            section="customerInfo",
            kind="select",
            required=True,
            searchable=True,
            static_options=SALUTATIONS,
        ),
        FieldDefinition(key="firstName", label="First name", section="customerInfo", required=True, searchable=True),
        FieldDefinition(key="lastName", label="Last name", section="customerInfo", required=True, searchable=True),
        FieldDefinition(key="designation", label="Designation", section="customerInfo", required=True, searchable=True),
        FieldDefinition(
            key="mobileNumbers",
            label="Mobile numbers",
            section="customerInfo",
            kind="repeatable-list",
            required=True,
            repeatable=RepeatableSpec(
                min_items=1, max_items=5, empty_message="At least one mobile number is required"
            ),
        ),
        FieldDefinition(key="dndStatus", label="DND status", section="customerInfo", kind="checkbox", default=False),
        FieldDefinition(
            key="emailAddress", label="Email address", section="customerInfo", kind="email", required=True, searchable=True
        ),
        FieldDefinition(
            key="preferredContactDateTime",
            label="Preferred contact date/time",
            section="customerInfo",
            kind="datetime",
            required=True,
            searchable=True,
        ),
        FieldDefinition(
            key="customerSegment",
            label="Customer segment",
            section="customerInfo",
            kind="select",
            searchable=True,
            static_options=CUSTOMER_SEGMENTS,
        ),
    ]
    product = [
        FieldDefinition(
            key="businessUnit",
            label="Business unit",
            section="productInfo",
            kind="select",
            required=True,
            searchable=True,
            static_options=BUSINESS_UNITS,
        ),
        FieldDefinition(
            key="productServices",
            label="Product/Services",
            section="productInfo",
            kind="select",
            required=True,
            searchable=True,
            options_depend_on="businessUnit",
            options_by_parent=PRODUCT_CATALOG,
        ),
        FieldDefinition(
            key="decisionTimeline",
            label="Decision timeline",
            section="productInfo",
            kind="select",
            searchable=True,
            static_options=DECISION_TIMELINES,
        ),
        FieldDefinition(key="existingSolution", label="Existing solution", section="productInfo", searchable=True),
    ]
    lead = [
        FieldDefinition(
            key="leadStatus",
            label="Lead status",
            section="leadInfo",
            kind="select",
            required=True,
            searchable=True,
            static_options=LEAD_STATUSES,
        ),
        FieldDefinition(
            key="pipeline", label="Pipeline", section="leadInfo", kind="select", required=True, searchable=True, static_options=PIPELINES
        ),
        FieldDefinition(
            key="leadRemark",
            label="Pipeline stage",
            section="leadInfo",
            kind="select",
            required=True,
            searchable=True,
            options_depend_on="pipeline",
            options_by_parent={pipeline.value: PIPELINE_STAGES for pipeline in PIPELINES},
            default_on_parent_set="Open",
        ),
        FieldDefinition(
            key="lostReason",
            label="Lost reason",
            section="leadInfo",
            searchable=True,
            required_when=Condition(field="leadRemark", value="Lost"),
            visible_when=Condition(field="leadRemark", value="Lost"),
        ),
        FieldDefinition(key="leadSource", label="Lead source", section="leadInfo", searchable=True),
        FieldDefinition(key="campaignName", label="Campaign name", section="leadInfo", kind="select", required=True, searchable=True),
        FieldDefinition(
            key="leadOwner", label="Lead owner", section="leadInfo", kind="select", required=True, searchable=True, static_options=LEAD_OWNERS
        ),
        FieldDefinition(
            key="leadGeneratedBy",
            label="Lead generated by",
            section="leadInfo",
            kind="select",
            required=True,
            searchable=True,
            static_options=LEAD_GENERATORS,
        ),
        FieldDefinition(
            key="leadType", label="Lead type", section="leadInfo", kind="select", required=True, searchable=True, static_options=LEAD_TYPES
        ),
        FieldDefinition(key="leadSourceKeywords", label="Lead source keywords", section="leadInfo", searchable=True),
        FieldDefinition(
            key="activityType",
            label="Activity type",
            section="leadInfo",
            kind="select",
            required=True,
            searchable=True,
            static_options=ACTIVITY_TYPES,
        ),
        FieldDefinition(key="remarks", label="Remarks", section="leadInfo", kind="textarea", required=True, searchable=True),
        FieldDefinition(key="competitorInfo", label="Competitor info", section="leadInfo", kind="textarea", searchable=True),
        FieldDefinition(
            key="uploadedFiles",
            label="Attachments",
            section="leadInfo",
            kind="file-list",
            repeatable=RepeatableSpec(min_items=0, max_items=5, item_default=None),
        ),
        FieldDefinition(key="documentTypeTags", label="Document type tags", section="leadInfo", searchable=True),
    ]
    return company + customer + product + lead


LEAD_QUICK_FIELDS = {
    "firstName",
    "lastName",
    "emailAddress",
    "companyName",
    "companyAddress",
    "companyCountry",
    "companyPhone",
    "companyEmail",
    "businessUnit",
    "productServices",
    "leadStatus",
    "leadOwner",
    "leadGeneratedBy",
    "leadType",
    "activityType",
    "remarks",
    "salutation",
    "designation",
    "preferredContactDateTime",
    "leadRemark",
    "leadSource",
    "campaignName",
    "pipeline",
    "mobileNumbers",
    "lostReason",
}


def build_lead_schema() -> FormSchema:
    return FormSchema(
        id="lead",
        title="Add New Lead",
        sections=[
            SectionDefinition(key="companyInfo", label="Company Information", order=0),
            SectionDefinition(key="customerInfo", label="Customer Information", order=1),
            SectionDefinition(key="productInfo", label="Product Information", order=2),
            SectionDefinition(key="leadInfo", label="Lead Information", order=3),
        ],
        fields=_lead_fields(),
        quick_mode_fields=LEAD_QUICK_FIELDS,
        scroll=_scroll_thresholds(),
    )


def build_deal_schema() -> FormSchema:
    fields = [
        FieldDefinition(key="dealname", label="Deal name", section="dealInfo", required=True, searchable=True),
        FieldDefinition(key="dealownerid", label="Deal owner", section="dealInfo", kind="select", required=True),
        FieldDefinition(
            key="dealstage",
            label="Deal stage",
            section="dealInfo",
            kind="select",
            required=True,
            default="Prospect",
            static_options=DEAL_STAGES,
        ),
        FieldDefinition(key="dealvalue", label="Deal value", section="dealInfo", kind="number", required=True, searchable=True),
        FieldDefinition(key="mrr", label="MRR", section="dealInfo", kind="number"),
        FieldDefinition(key="arr", label="ARR", section="dealInfo", kind="number"),
        FieldDefinition(
            key="revenuetype", label="Revenue type", section="dealInfo", kind="select", default="One-time", static_options=REVENUE_TYPES
        ),
        FieldDefinition(key="expectedclosedate", label="Expected close date", section="dealInfo", kind="date", required=True),
        FieldDefinition(key="actualclosedate", label="Actual close date", section="dealInfo", kind="date"),
        FieldDefinition(key="probability", label="Probability", section="dealInfo", kind="number", default=10),
        FieldDefinition(key="dealtype", label="Deal type", section="dealInfo", kind="select", default="New", static_options=DEAL_TYPES),
        FieldDefinition(key="leadsource", label="Lead source", section="dealInfo"),
        FieldDefinition(
            key="dealstatus", label="Deal status", section="dealInfo", kind="select", default="Open", static_options=DEAL_STATUSES
        ),
        FieldDefinition(
            key="lostreason",
            label="Lost reason",
            section="dealInfo",
            searchable=True,
            required_when=Condition(field="dealstage", value="Closed Lost"),
            visible_when=Condition(field="dealstage", value="Closed Lost"),
        ),
        FieldDefinition(key="customername", label="Customer name", section="customerInfo", required=True, searchable=True),
        FieldDefinition(
            key="customeremail", label="Customer email", section="customerInfo", kind="email", required=True, searchable=True
        ),
        FieldDefinition(key="customerphone", label="Customer phone", section="customerInfo", required=True, searchable=True),
        FieldDefinition(key="customercompany", label="Customer company", section="customerInfo", searchable=True),
        FieldDefinition(key="customeraddress", label="Customer address", section="customerInfo", kind="textarea", searchable=True),
        FieldDefinition(key="customerdesignation", label="Customer designation", section="customerInfo", searchable=True),
        FieldDefinition(
            key="customercountry", label="Country", section="customerInfo", kind="select", static_options=COUNTRIES
        ),
        FieldDefinition(
            key="customerstate", label="State", section="customerInfo", kind="select", options_depend_on="customercountry"
        ),
        FieldDefinition(key="customercity", label="City", section="customerInfo", kind="select", options_depend_on="customerstate"),
        FieldDefinition(
            key="customerindustry", label="Industry", section="customerInfo", kind="select", static_options=INDUSTRIES
        ),
        FieldDefinition(key="contactperson", label="Contact person", section="contactInfo", searchable=True),
        FieldDefinition(key="contactemail", label="Contact email", section="contactInfo", kind="email", searchable=True),
        FieldDefinition(key="contactphone", label="Contact phone", section="contactInfo", searchable=True),
        FieldDefinition(key="contactdesignation", label="Contact designation", section="contactInfo"),
        FieldDefinition(key="contactdepartment", label="Contact department", section="contactInfo"),
        FieldDefinition(
            key="businessunit",
            label="Business unit",
            section="productInfo",
            kind="select",
            searchable=True,
            static_options=BUSINESS_UNITS,
        ),
        FieldDefinition(
            key="productLineItems",
            label="Products/Services",
            section="productInfo",
            kind="repeatable-list",
            options_depend_on="businessunit",
            options_by_parent=PRODUCT_CATALOG,
            repeatable=RepeatableSpec(
                min_items=1,
                max_items=5,
                item_default=LINE_ITEM_TEMPLATE,
                item_key="productService",
                empty_message="At least one product or service is required",
            ),
        ),
        FieldDefinition(key="estimatedbudget", label="Estimated budget", section="productInfo", kind="number", searchable=True),
        FieldDefinition(
            key="decisiontimeline", label="Decision timeline", section="productInfo", kind="select", static_options=DECISION_TIMELINES
        ),
        FieldDefinition(key="dealcontext", label="Deal context", section="dealContext", kind="textarea", searchable=True),
        FieldDefinition(key="competitiveadvantage", label="Competitive advantage", section="dealContext", kind="textarea"),
        FieldDefinition(key="risksandchallenges", label="Risks and challenges", section="dealContext", kind="textarea"),
        FieldDefinition(key="nextstep", label="Next step", section="dealContext", searchable=True),
        FieldDefinition(key="comments", label="Comments", section="dealContext", kind="textarea", searchable=True),
        FieldDefinition(
            key="attachments",
            label="Attachments",
            section="dealContext",
            kind="file-list",
            repeatable=RepeatableSpec(min_items=0, max_items=10, item_default=None),
        ),
    ]
    required = {field.key for field in fields if field.required}
    return FormSchema(
        id="deal",
        title="Add New Deal",
        sections=[
            SectionDefinition(key="dealInfo", label="Deal Information", order=0),
            SectionDefinition(key="customerInfo", label="Customer Information", order=1),
            SectionDefinition(key="contactInfo", label="Contact Information", order=2),
            SectionDefinition(key="productInfo", label="Product Information", order=3),
            SectionDefinition(key="dealContext", label="Deal Context", order=4),
        ],
        fields=fields,
        quick_mode_fields=required | {"lostreason"},
        scroll=_scroll_thresholds(),
    )


def build_opportunity_schema() -> FormSchema:
    fields = [
        FieldDefinition(key="opportunityname", label="Opportunity name", section="opportunityInfo", required=True, searchable=True),
        FieldDefinition(key="opportunityownerid", label="Opportunity owner", section="opportunityInfo", kind="select", required=True),
        FieldDefinition(
            key="opportunitystage",
            label="Opportunity stage",
            section="opportunityInfo",
            kind="select",
            required=True,
            default="Prospect",
            static_options=DEAL_STAGES,
        ),
        FieldDefinition(
            key="opportunityvalue", label="Opportunity value", section="opportunityInfo", kind="number", required=True, searchable=True
        ),
        FieldDefinition(key="discountvalue", label="Discount value", section="opportunityInfo", kind="number"),
        FieldDefinition(
            key="revenuetype",
            label="Revenue type",
            section="opportunityInfo",
            kind="select",
            default="One-time",
            static_options=REVENUE_TYPES,
        ),
        FieldDefinition(key="expectedclosedate", label="Expected close date", section="opportunityInfo", kind="date", required=True),
        FieldDefinition(key="probability", label="Probability", section="opportunityInfo", kind="number", default=10),
        FieldDefinition(
            key="opportunityhealthindicator",
            label="Health indicator",
            section="opportunityInfo",
            kind="select",
            default="Green",
            static_options=HEALTH_INDICATORS,
        ),
        FieldDefinition(
            key="opportunitystatus",
            label="Opportunity status",
            section="opportunityInfo",
            kind="select",
            default="Open",
            static_options=DEAL_STATUSES,
        ),
        FieldDefinition(key="customername", label="Customer name", section="customerInfo", required=True, searchable=True),
        FieldDefinition(
            key="customeremail", label="Customer email", section="customerInfo", kind="email", required=True, searchable=True
        ),
        FieldDefinition(key="customerphone", label="Customer phone", section="customerInfo", required=True, searchable=True),
        FieldDefinition(key="customercompany", label="Customer company", section="customerInfo", searchable=True),
        FieldDefinition(key="customeraddress", label="Customer address", section="customerInfo", kind="textarea"),
        FieldDefinition(key="customerdesignation", label="Customer designation", section="customerInfo"),
        FieldDefinition(key="contactperson", label="Contact person", section="contactInfo", searchable=True),
        FieldDefinition(key="contactemail", label="Contact email", section="contactInfo", kind="email", searchable=True),
        FieldDefinition(key="contactphone", label="Contact phone", section="contactInfo"),
        FieldDefinition(key="contactdesignation", label="Contact designation", section="contactInfo"),
        FieldDefinition(key="lostreason", label="Lost reason", section="closingDetails", searchable=True),
        FieldDefinition(key="nextstep", label="Next step", section="closingDetails", searchable=True),
        FieldDefinition(key="comments", label="Comments", section="closingDetails", kind="textarea", searchable=True),
        FieldDefinition(key="expectedrevenue", label="Expected revenue", section="closingDetails", kind="number"),
        FieldDefinition(key="actualcloserevenue", label="Actual close revenue", section="closingDetails", kind="number"),
        FieldDefinition(
            key="attachments",
            label="Attachments",
            section="closingDetails",
            kind="file-list",
            repeatable=RepeatableSpec(min_items=0, max_items=1, item_default=None),
        ),
    ]
    return FormSchema(
        id="opportunity",
        title="Add New Opportunity",
        sections=[
            SectionDefinition(key="opportunityInfo", label="Opportunity Information", order=0),
            SectionDefinition(key="customerInfo", label="Customer Information", order=1),
            SectionDefinition(key="contactInfo", label="Contact Information", order=2),
            SectionDefinition(key="closingDetails", label="Closing Details", order=3),
        ],
        fields=fields,
        quick_mode_fields={field.key for field in fields if field.required},
        scroll=_scroll_thresholds(),
    )


FORM_BUILDERS = {
    "lead": build_lead_schema,
    "deal": build_deal_schema,
    "opportunity": build_opportunity_schema,
}

_SCHEMAS: Dict[str, FormSchema] = {}


def get_schema(form_id: str) -> FormSchema:
    """Return the schema for ``form_id``, building it on first use."""
    if form_id not in _SCHEMAS:
        builder = FORM_BUILDERS[form_id]
        _SCHEMAS[form_id] = builder()
    return _SCHEMAS[form_id]


def available_forms() -> List[FormSchema]:
    return [get_schema(form_id) for form_id in FORM_BUILDERS]
