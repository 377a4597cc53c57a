# ============================================================================
# src/lab_reconciliation/parsing/prompts.py
# ============================================================================
"""
Extraction prompt for the vision parsing providers.

The only locale-dependent part is the script the patient name is returned
in; the name key makes either script match existing profiles.
"""

_NAME_SCRIPT_CYRILLIC = (
    'Return patient_name in Cyrillic (Russian) script. If the name is in Latin, '
    'transliterate it to Russian Cyrillic (e.g., "Krasnova Evgeniia" -> "Краснова Евгения").'
)

_NAME_SCRIPT_LATIN = (
    'Return patient_name in Latin script. If the name is in Cyrillic, '
    'transliterate it to Latin (e.g., "Краснова Евгения" -> "Krasnova Evgenia").'
)

_PROMPT_TEMPLATE = """You are a medical lab results parser. Extract structured data from the uploaded medical lab report.

RULES:
1. Extract patient's full name. If "Prezime" (surname) and "Ime" (name) are separate, combine as "Surname Firstname". {name_script}
2. Extract test date in ISO format (YYYY-MM-DD). Convert DD.MM.YYYY or DD/MM/YYYY to ISO
3. Extract lab/clinic name
4. Detect document language (sr, ru, en, de, etc.)
5. Detect document type: "blood", "biochemistry", "hormone", "microbiology", "urine", "other"
6. Extract patient date of birth if visible (ISO format)
7. Extract patient sex if visible: "male" or "female"
8. Set partial_result to true if the page is visibly cut off or continues on another page

FOR EACH TEST RESULT:
- name: exactly as written in the document
- value: numeric value OR qualitative result string (e.g., "negativan", "negative", "positive", "не обнаружено")
- value_numeric: true if value is a number, false if qualitative
- unit: unit of measurement (null if qualitative)
- ref_min: lower reference range number (null if not provided or qualitative)
- ref_max: upper reference range number (null if not provided or qualitative)
- flag: "normal" | "low" | "high" | "critical" | "needs_review" | "abnormal"

VALIDATION:
- If Hematocrit < 20% or > 65%, set flag to "needs_review"
- If a numeric value seems impossibly wrong for the biomarker, set flag to "needs_review"
- For qualitative results (negative/positive/negativan/pozitivan), flag is "normal" for negative, "abnormal" for positive
- Compare numeric values to ref ranges to determine low/high flags

PRIVACY - do NOT include in output:
- National ID numbers (JMBG, SNILS, SSN, ИНН)
- Patient address
- Protocol/barcode numbers

Return ONLY valid JSON:
{{
  "patient_name": "string or null",
  "test_date": "YYYY-MM-DD or null",
  "lab_name": "string or null",
  "language": "string",
  "document_type": "blood | biochemistry | hormone | microbiology | urine | other",
  "patient_dob": "YYYY-MM-DD or null",
  "patient_sex": "male | female | null",
  "partial_result": false,
  "readings": [
    {{
      "name": "string",
      "value": "number or string",
      "value_numeric": true,
      "unit": "string or null",
      "ref_min": null,
      "ref_max": null,
      "flag": "normal"
    }}
  ],
  "notes": ["string"]
}}

No markdown formatting. No text outside the JSON object. Use null for unknown values."""


def build_parse_prompt(locale: str = "en") -> str:
    """Prompt for one document; Russian-locale accounts get Cyrillic names."""
    name_script = _NAME_SCRIPT_CYRILLIC if locale == "ru" else _NAME_SCRIPT_LATIN
    return _PROMPT_TEMPLATE.format(name_script=name_script)
