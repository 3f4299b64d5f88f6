import logging
from dataclasses import dataclass, field
from datetime import date

from carefile.config import ANALYSIS_LANGUAGE
from carefile.models.ai import PatientInfo

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = """You are a medical pre-analysis assistant working for a medical facilitation service.
Clinic staff send you the documents of a patient's case (lab results, reports, prescriptions, scans)
so that partner hospitals can quickly understand the case.

IMPORTANT:
- This is a PRE-ANALYSIS, not a diagnosis.
- Be factual and objective; only use what the documents and images show.
- Flag anything that may need particular attention.

Structure your answer in markdown with these sections:
1. **Summary** - brief overview of the patient's condition
2. **Key observations** - important findings from the documents and images
3. **Points of attention** - potential red flags
4. **Recommendations** - suggested follow-up, additional tests or specialties to consult

Always end with this disclaimer: this pre-analysis is generated by artificial intelligence, is NOT a
medical diagnosis, and must be reviewed by a qualified health professional.

Answer in {language}."""

INVOICE_SYSTEM_PROMPT = """You are a billing assistant for a medical facilitation service.
From the medical pre-analysis of a patient's case, draft a PROFORMA invoice: a non-binding,
itemized cost estimate for the care the case is likely to need.

The invoice must contain:
- A header with the issuing structure's name and address, the invoice number and the invoice date
- The patient's identification (name, age, nationality, passport number when known)
- An itemized table: one line per service (consultations, examinations, procedures, hospitalization,
  medication, logistics) with quantity, unit price and line total
- Subtotal, taxes if applicable, and grand total in the requested currency
- Payment details and legal mentions when provided
- A clear statement that this is a proforma invoice and not a request for payment

Use realistic prices for the given country and city. Format the result in markdown.
Answer in {language}."""


@dataclass
class ModelPrompt:
    system: str
    user: str
    images: list[str] = field(default_factory=list)


@dataclass
class InvoiceInput:
    patient: PatientInfo
    medical_object: str
    invoice_number: str
    invoice_date: str
    currency: str = "EUR"
    structure_name: str | None = None
    structure_address: str | None = None
    country: str | None = None
    city: str | None = None
    bank_details: str | None = None
    legal_mentions: str | None = None


def compute_age(date_of_birth: date, today: date | None = None) -> int:
    """Whole calendar years between ``date_of_birth`` and ``today``."""
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def patient_context(patient: PatientInfo | None, today: date | None = None) -> str:
    if patient is None:
        return "Patient: not specified"

    lines = [f"Patient: {patient.full_name or 'not specified'}"]
    if patient.patient_code:
        lines.append(f"Patient code: {patient.patient_code}")
    if patient.date_of_birth:
        lines.append(f"Age: {compute_age(patient.date_of_birth, today)} years")
    if patient.gender:
        lines.append(f"Gender: {patient.gender}")
    return "\n".join(lines)


def build_analysis_prompt(
    texts: list[str],
    images: list[str],
    patient: PatientInfo | None = None,
    today: date | None = None,
) -> ModelPrompt:
    sections = [patient_context(patient, today)]
    if texts:
        sections.append("Medical documents to analyze:\n\n" + "\n\n".join(texts))
    if images:
        sections.append(
            f"{len(images)} medical image(s) are attached to this request. "
            "Examine each one and include its findings in the report."
        )

    prompt = ModelPrompt(
        system=ANALYSIS_SYSTEM_PROMPT.format(language=ANALYSIS_LANGUAGE),
        user="\n\n".join(sections),
        images=list(images),
    )
    logger.debug("Analysis prompt: %d chars, %d images", len(prompt.user), len(prompt.images))
    return prompt


def build_invoice_prompt(invoice: InvoiceInput, today: date | None = None) -> ModelPrompt:
    patient = invoice.patient
    patient_lines = [f"Name: {patient.full_name or 'not specified'}"]
    if patient.date_of_birth:
        patient_lines.append(f"Age: {compute_age(patient.date_of_birth, today)} years")
    if patient.nationality:
        patient_lines.append(f"Nationality: {patient.nationality}")
    if patient.passport_number:
        patient_lines.append(f"Passport number: {patient.passport_number}")

    details = [
        ("Issuing structure", invoice.structure_name),
        ("Structure address", invoice.structure_address),
        ("Invoice number", invoice.invoice_number),
        ("Invoice date", invoice.invoice_date),
        ("Currency", invoice.currency),
        ("Country", invoice.country),
        ("City", invoice.city),
        ("Bank details", invoice.bank_details),
        ("Legal mentions", invoice.legal_mentions),
    ]
    detail_lines = [f"{label}: {value}" for label, value in details if value]

    user = (
        "Patient:\n" + "\n".join(patient_lines) + "\n\n"
        "Invoice details:\n" + "\n".join(detail_lines) + "\n\n"
        "Medical pre-analysis:\n" + invoice.medical_object
    )
    return ModelPrompt(
        system=INVOICE_SYSTEM_PROMPT.format(language=ANALYSIS_LANGUAGE),
        user=user,
    )
