"""Reference clause policy: mutual non-disclosure agreement under Kenyan law.

Ten mandatory clauses and six optional ones. Template placeholders use
``[TOKEN]`` markers resolved through ``PLACEHOLDERS``.
"""

from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Placeholder tokens -> workflow field paths
# ---------------------------------------------------------------------------

PLACEHOLDERS: dict[str, str] = {
    "DISCLOSING_PARTY_NAME": "disclosing.legal_name",
    "DISCLOSING_PARTY_TYPE": "disclosing.party_type",
    "DISCLOSING_ID_TYPE": "disclosing.id_type",
    "DISCLOSING_ID_NUMBER": "disclosing.id_number",
    "DISCLOSING_ADDRESS": "disclosing.address",
    "RECEIVING_PARTY_NAME": "receiving.legal_name",
    "RECEIVING_PARTY_TYPE": "receiving.party_type",
    "RECEIVING_ID_TYPE": "receiving.id_type",
    "RECEIVING_ID_NUMBER": "receiving.id_number",
    "RECEIVING_ADDRESS": "receiving.address",
    "CONFIDENTIAL_INFORMATION_SCOPE": "terms.confidential_info_scope",
    "PURPOSE_OF_DISCLOSURE": "terms.purpose",
    "PERMITTED_PURPOSES": "terms.permitted_use",
    "EFFECTIVE_DATE": "terms.effective_date",
    "DURATION_MONTHS": "terms.duration_months",
    "SURVIVAL_YEARS": "terms.survival_years",
    "RETURN_TIMELINE_DAYS": "terms.return_timeline_days",
    "GOVERNING_LAW": "terms.governing_law",
    "JURISDICTION_COURTS": "terms.jurisdiction",
    "DISPUTE_RESOLUTION_METHOD": "terms.dispute_resolution_method",
    "ARBITRATION_LOCATION": "terms.arbitration_location",
    "PENALTY_AMOUNT": "terms.penalty_amount",
    "PENALTY_CURRENCY": "terms.penalty_currency",
}

DEFAULT_TERMS: dict[str, Any] = {
    "duration_months": 24,
    "survival_years": 5,
    "return_timeline_days": 7,
    "governing_law": "Laws of Kenya",
    "jurisdiction": "High Court of Kenya",
    "dispute_resolution_method": "arbitration",
    "arbitration_location": "Nairobi, Kenya",
    "penalty_currency": "KSH",
}

# ---------------------------------------------------------------------------
# Mandatory clauses
# ---------------------------------------------------------------------------

MANDATORY_CLAUSES: list[dict[str, Any]] = [
    {
        "key": "parties_identification",
        "label": "Parties Identification and Legal Capacity",
        "template": (
            "This Agreement is entered into between [DISCLOSING_PARTY_NAME], a "
            "[DISCLOSING_PARTY_TYPE] with [DISCLOSING_ID_TYPE] number "
            "[DISCLOSING_ID_NUMBER], having their principal address at "
            "[DISCLOSING_ADDRESS] (the 'Disclosing Party'), and "
            "[RECEIVING_PARTY_NAME], a [RECEIVING_PARTY_TYPE] with "
            "[RECEIVING_ID_TYPE] number [RECEIVING_ID_NUMBER], having their "
            "principal address at [RECEIVING_ADDRESS] (the 'Receiving Party')."
        ),
        "required_fields": [
            "disclosing.legal_name",
            "receiving.legal_name",
            "disclosing.address",
            "receiving.address",
        ],
        "guidance": (
            "Both parties must be identified with legal names, addresses and "
            "identification numbers."
        ),
    },
    {
        "key": "definition_of_confidential_information",
        "label": "Definition of Confidential Information",
        "template": (
            "'Confidential Information' means any and all non-public, proprietary "
            "or confidential information disclosed by the Disclosing Party, "
            "including but not limited to: [CONFIDENTIAL_INFORMATION_SCOPE]."
        ),
        "required_fields": ["terms.confidential_info_scope"],
        "guidance": (
            "Specific enough to be enforceable, broad enough to cover all "
            "relevant information."
        ),
    },
    {
        "key": "purpose_and_permitted_use",
        "label": "Purpose of Disclosure and Permitted Use",
        "template": (
            "The Confidential Information is disclosed solely for the purpose of "
            "[PURPOSE_OF_DISCLOSURE]. The Receiving Party may use the Confidential "
            "Information only for [PERMITTED_PURPOSES] and for no other purpose "
            "without the prior written consent of the Disclosing Party."
        ),
        "required_fields": ["terms.purpose", "terms.permitted_use"],
        "guidance": "A clear purpose limitation is essential for enforceability.",
    },
    {
        "key": "obligations_and_duties",
        "label": "Obligations and Duties of Receiving Party",
        "template": (
            "The Receiving Party undertakes to: (a) hold and maintain the "
            "Confidential Information in strict confidence; (b) take reasonable "
            "precautions to protect the confidentiality of the information; (c) "
            "not disclose any Confidential Information to third parties without "
            "prior written consent; (d) limit access to employees or advisors who "
            "have a legitimate need to know; and (e) ensure such persons are bound "
            "by confidentiality obligations no less restrictive than those "
            "contained herein."
        ),
        "required_fields": [],
        "guidance": "The standard of care must be reasonable and practical.",
    },
    {
        "key": "restrictions_and_prohibitions",
        "label": "Restrictions on Use and Disclosure",
        "template": (
            "The Receiving Party shall not: (a) use the Confidential Information "
            "for any purpose other than the Purpose; (b) disclose, reveal, or make "
            "available the Confidential Information to any person or entity; (c) "
            "reverse engineer, disassemble, or decompile any prototypes, software, "
            "or other tangible materials; (d) copy or reproduce the Confidential "
            "Information except as necessary for the Purpose; or (e) remove or "
            "alter any proprietary notices."
        ),
        "required_fields": [],
        "guidance": "Restrictions must be reasonable in scope, duration and area.",
    },
    {
        "key": "duration_and_survival",
        "label": "Duration of Confidentiality and Survival",
        "template": (
            "This Agreement shall commence on [EFFECTIVE_DATE] and shall continue "
            "for a period of [DURATION_MONTHS] months, unless terminated earlier. "
            "The obligations of confidentiality shall survive termination and "
            "continue for a period of [SURVIVAL_YEARS] years from the date of "
            "termination."
        ),
        "required_fields": [
            "terms.effective_date",
            "terms.duration_months",
            "terms.survival_years",
        ],
        "guidance": "Duration must be reasonable, typically 2 to 5 years.",
    },
    {
        "key": "return_or_destruction",
        "label": "Return or Destruction of Materials",
        "template": (
            "Upon termination of this Agreement or upon written request by the "
            "Disclosing Party, the Receiving Party shall, within "
            "[RETURN_TIMELINE_DAYS] days: (a) return all documents, materials, and "
            "other tangible manifestations of Confidential Information; and (b) "
            "destroy all copies, notes, and derivatives thereof in its possession "
            "or control, and provide written certification of such destruction."
        ),
        "required_fields": ["terms.return_timeline_days"],
        "guidance": "A timeline of 7 to 30 days is standard.",
    },
    {
        "key": "governing_law_jurisdiction",
        "label": "Governing Law and Jurisdiction",
        "template": (
            "This Agreement shall be governed by and construed in accordance with "
            "the [GOVERNING_LAW]. The parties hereby submit to the exclusive "
            "jurisdiction of the [JURISDICTION_COURTS] for the resolution of any "
            "disputes arising out of or in connection with this Agreement."
        ),
        "required_fields": ["terms.governing_law", "terms.jurisdiction"],
        "guidance": "Kenyan law and courts must be named for local enforceability.",
    },
    {
        "key": "dispute_resolution",
        "label": "Dispute Resolution Mechanism",
        "template": (
            "Any dispute, controversy, or claim arising out of or relating to this "
            "Agreement shall be resolved through [DISPUTE_RESOLUTION_METHOD]. If "
            "arbitration is selected, it shall be conducted in "
            "[ARBITRATION_LOCATION] in accordance with the Arbitration Act (Cap 49) "
            "of Kenya."
        ),
        "required_fields": [
            "terms.dispute_resolution_method",
            "terms.arbitration_location",
        ],
        "guidance": "Arbitration under the Kenyan Arbitration Act is preferred.",
    },
    {
        "key": "signatures_execution",
        "label": "Signatures and Execution",
        "template": (
            "This Agreement may be executed in counterparts and delivered "
            "electronically. Each party represents that the person executing this "
            "Agreement on its behalf has the authority to do so."
        ),
        "required_fields": [],
        "guidance": "A witness may be required for some party types.",
    },
]

# ---------------------------------------------------------------------------
# Optional clauses
# ---------------------------------------------------------------------------

OPTIONAL_CLAUSES: list[dict[str, Any]] = [
    {
        "key": "exceptions_to_confidentiality",
        "label": "Exceptions to Confidentiality",
        "template": (
            "The obligations of this Agreement do not apply to information that "
            "(a) is or becomes publicly available through no fault of the "
            "Receiving Party; (b) was lawfully known to the Receiving Party before "
            "disclosure; (c) is independently developed without use of the "
            "Confidential Information; or (d) must be disclosed by law or court "
            "order."
        ),
        "risk_level": "low",
        "recommended": True,
        "guidance": "Standard legal exceptions.",
    },
    {
        "key": "remedies_and_damages",
        "label": "Remedies and Liquidated Damages",
        "template": (
            "In the event of a breach, the Receiving Party shall pay liquidated "
            "damages of [PENALTY_CURRENCY] [PENALTY_AMOUNT], without prejudice to "
            "the Disclosing Party's right to seek injunctive or other equitable "
            "relief."
        ),
        "required_fields": ["terms.penalty_amount", "terms.penalty_currency"],
        "risk_level": "medium",
        "recommended": True,
        "guidance": "Specify monetary damages and equitable remedies.",
    },
    {
        "key": "non_solicitation",
        "label": "Non-Solicitation of Employees/Customers",
        "template": (
            "For the duration of this Agreement, neither party shall solicit the "
            "employees or customers of the other party that it came to know "
            "through the Confidential Information."
        ),
        "risk_level": "high",
        "recommended": False,
        "guidance": "May be too restrictive; use only when necessary.",
    },
    {
        "key": "intellectual_property_protection",
        "label": "Intellectual Property Rights Protection",
        "template": (
            "Nothing in this Agreement grants the Receiving Party any licence or "
            "right in the intellectual property of the Disclosing Party. All "
            "Confidential Information remains the property of the Disclosing "
            "Party."
        ),
        "risk_level": "medium",
        "recommended": True,
        "guidance": "Clarify that no IP rights are transferred through disclosure.",
    },
    {
        "key": "modification_amendment",
        "label": "Modification and Amendment Procedures",
        "template": (
            "This Agreement may only be modified by a written instrument signed by "
            "both parties."
        ),
        "risk_level": "low",
        "recommended": True,
        "guidance": "Specify how the agreement can be modified.",
    },
    {
        "key": "force_majeure",
        "label": "Force Majeure Clause",
        "template": (
            "Neither party shall be liable for any delay or failure to perform its "
            "obligations under this Agreement due to causes beyond its reasonable "
            "control."
        ),
        "risk_level": "low",
        "recommended": False,
        "guidance": "Consider for long-term agreements.",
    },
]

KENYA_NDA_POLICY: dict[str, Any] = {
    "name": "kenya_nda",
    "jurisdiction": "Kenya",
    "contract_type": "nda",
    "duration_ceiling_months": 60,
    "return_timeline_range_days": (7, 30),
    "clauses": [
        {**clause, "mandatory": True, "order": index}
        for index, clause in enumerate(MANDATORY_CLAUSES, start=1)
    ]
    + [
        {**clause, "mandatory": False, "order": index}
        for index, clause in enumerate(OPTIONAL_CLAUSES, start=1)
    ],
    "placeholders": PLACEHOLDERS,
    "default_terms": DEFAULT_TERMS,
}
