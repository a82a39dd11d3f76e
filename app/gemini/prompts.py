from typing import Optional

SUMMARY_SYSTEM_INSTRUCTION = """
You extract structured planning data from planning-related documents.
Return ONLY valid minified JSON that matches the provided schema.
Include every top-level key of the schema. If a field is unknown or not present, use null or an empty array.
"""

ANALYSIS_SYSTEM_INSTRUCTION = """
You extract structured planning risk insights from planning-related documents.
Return ONLY valid minified JSON that matches the provided schema.
Include every top-level key of the schema. If a field is unknown or not present, use null or an empty array.
"""

SUMMARY_SCHEMA = """
{
  "site": {
    "name": string|null,
    "address": string|null,
    "localAuthority": string|null,
    "clientName": string|null
  },
  "proposal": {
    "description": string|null,
    "route": string[],
    "dwellingsMin": number|null,
    "dwellingsMax": number|null,
    "isHousingLed": boolean
  },
  "process": {
    "stage": string|null,
    "steps": string[]
  },
  "fees": {
    "planningAuthorityFee": {
      "amount": number|null,
      "currency": "GBP",
      "payer": string|null,
      "description": string|null
    },
    "agentFee": {
      "amount": number|null,
      "currency": "GBP",
      "vatExcluded": boolean,
      "description": string|null
    }
  },
  "documentsRequired": string[],
  "meta": {
    "documentTitle": string|null,
    "documentDate": string|null,
    "sourceFileName": string|null
  }
}
"""

ANALYSIS_SCHEMA = """
{
  "headlineRisk": string|null,
  "riskLevel": "LOW" | "MEDIUM" | "HIGH" | "EXTREME" | null,
  "keyIssues": string[],
  "policyRefs": string[],
  "recommendedActions": string[],
  "timelineNotes": string|null
}
"""

DRAWINGS_FOCUS_NOTE = "Prioritise elevations, heights, materials, fenestration, and architectural notes."


def _focus_note(focus: Optional[str]) -> str:
    return DRAWINGS_FOCUS_NOTE if focus == "drawings" else ""


def create_summary_prompt(text: str, file_name: str) -> str:
    rules = f"""
    Rules:
    - Use numbers only when clearly stated in the text.
    - Set "route" to values like ["PIP"], ["PreApp"], ["Full"], or ["Other"].
    - Detect housing-led schemes by words like "housing development", "dwellings", "residential".
    - For fees, parse pound amounts like "2688.00" and "3250.00" and set currency to "GBP".
    - Set "sourceFileName" to "{file_name}".
    """

    return f"""
    Schema:
    {SUMMARY_SCHEMA}
    {rules}
    Now extract data from this document text:

    {text}
    """


def create_summary_image_prompt(file_name: str, focus: Optional[str] = None) -> str:
    return f"""
    You are looking at a planning drawing or plan sheet.
    Extract information that is explicitly visible in the drawing, title block, and annotations.
    {_focus_note(focus)}
    Return JSON using the schema below.
    If a field is unknown or not present, use null or an empty array.
    Set "sourceFileName" to "{file_name}".

    Schema:
    {SUMMARY_SCHEMA}
    """


def create_analysis_prompt(text: str, file_name: str) -> str:
    rules = f"""
    Rules:
    - Headline should be 1-2 sentences, e.g. "Medium risk: scale acceptable but highways access needs evidence."
    - riskLevel must be one of LOW, MEDIUM, HIGH, EXTREME.
    - keyIssues should be concise bullet-style strings.
    - policyRefs should capture policy codes or names if explicitly mentioned (otherwise empty).
    - recommendedActions should be practical next steps (e.g. pre-app, surveys, reports).
    - timelineNotes should mention any timeline/fee implications if stated.
    - File name: "{file_name}".
    """

    return f"""
    Schema:
    {ANALYSIS_SCHEMA}
    {rules}
    Now extract risk analysis from this document text:

    {text}
    """


def create_analysis_image_prompt(file_name: str, focus: Optional[str] = None) -> str:
    return f"""
    You are looking at a planning drawing or plan sheet.
    Extract planning risk signals that are explicitly visible in the drawing, title block, and annotations.
    {_focus_note(focus)}
    Return JSON using the schema below.
    If a field is unknown or not present, use null or an empty array.
    File name: "{file_name}".

    Schema:
    {ANALYSIS_SCHEMA}
    """
