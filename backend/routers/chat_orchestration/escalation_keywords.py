"""
Relay Escalation Keywords - editable trigger lists for the escalation policy

Everything here is matched case-insensitively as a substring of the
lowercased customer message. Short stems ("manag", "supervis") are
deliberate so inflections match too.
"""

import re

# Explicit requests for a person
HUMAN_REQUEST_PHRASES = [
    "speak to human",
    "talk to human",
    "speak to a human",
    "talk to a human",
    "real person",
    "real representative",
    "speak to representative",
    "connect me with agent",
    "connect me with an agent",
    "connect with support",
    "human support",
    "live agent",
    "human agent",
    "not a bot",
    "stop bot",
]

ESCALATION_KEYWORDS = [
    # Authority
    "manager",
    "manag",
    "supervis",
    "escalate",
    "escalation",
    "staff",
    "speak to",
    "talk to",
    # Urgency
    "urgent",
    "immediate",
    "asap",
    "emergency",
    # Dissatisfaction
    "complaint",
    "disappointed",
    "unhappy",
    "dissatisfied",
    "upset",
    "angry",
    # Money
    "refund",
    "money back",
    "cancel",
    "cancelation",
    "cancellation",
    "return policy",
    "charge",
    "overcharged",
    "demand",
    # Legal
    "lawsuit",
    "legal",
    "attorney",
    "lawyer",
    "sue",
    "court",
    # Reputation
    "review",
    "rating",
    "bbb",
    "report",
    "social media",
]

# Both must match for the money rule to hand off
MONEY_PATTERN = re.compile(r"\$\d+|\d+\s*dollars|\d+\s*usd|\d+\s*€|\d+\s*euro", re.IGNORECASE)
REFUND_TERMS_PATTERN = re.compile(
    r"refund|return|money back|charge|credit|debit|payment|transaction", re.IGNORECASE
)

# Both lists must match for the complex-issue rule to hand off
COMPLEX_ISSUE_KEYWORDS = [
    "damaged",
    "broken",
    "defective",
    "wrong item",
    "missing item",
    "never arrived",
    "not delivered",
    "lost package",
    "stolen",
    "double charged",
    "charged twice",
    "account locked",
    "hacked",
    "fraud",
    "warranty",
]

INTENSITY_MARKERS = [
    "again",
    "still",
    "already",
    "third time",
    "multiple times",
    "every time",
    "nobody",
    "no one",
    "ridiculous",
    "unacceptable",
    "!!",
]
