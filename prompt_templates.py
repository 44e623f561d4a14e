"""Prompt templates per task category.

Each benchmark test case carries a category; the prompt sent to the model is
the test case prompt wrapped in that category's template.
"""

import re

TEMPLATES = {
    "text-completion": "\n{input}\n",
    "summarization": (
        "\nPlease summarize the following text in {format}:\n\n"
        "{text}\n\n"
        "Summary:\n"
    ),
    "question-answering": "\nQuestion: {question}\n\nAnswer:\n",
    "code-generation": (
        "\nWrite {language} code to solve the following problem:\n\n"
        "{problem}\n\n"
        "Your code should be well-commented and follow best practices.\n\n"
        "Code:\n"
    ),
    "creative-writing": (
        "\nWrite a {genre} about {topic} with the following characteristics:\n"
        "- {characteristic1}\n"
        "- {characteristic2}\n"
        "- {characteristic3}\n\n"
        "Your writing should be engaging and creative.\n"
    ),
    "reasoning": "\n{problem}\n\nThink through this step by step and provide your reasoning.\n",
    "classification": (
        "\nClassify the following text into one of these categories: {categories}\n\n"
        "Text: {text}\n\n"
        "Classification:\n"
    ),
}

DEFAULT_CATEGORY = "text-completion"

_LANGUAGE_RE = re.compile(r"in (JavaScript|Python|Java|C\+\+|Ruby|Go)", re.IGNORECASE)

CREATIVE_DEFAULTS = {
    "genre": "short piece",
    "characteristic1": "vivid, concrete imagery",
    "characteristic2": "a clear beginning, middle and end",
    "characteristic3": "a distinctive voice",
}


def get_template(category: str | None) -> str:
    """Template for a category; unknown categories use text-completion."""
    return TEMPLATES.get(category or DEFAULT_CATEGORY, TEMPLATES[DEFAULT_CATEGORY])


def detect_language(prompt: str) -> str:
    match = _LANGUAGE_RE.search(prompt)
    return match.group(1) if match else "JavaScript"


def template_variables(category: str, prompt: str, options: dict | None = None) -> dict:
    """Build the variables a category template needs from the raw prompt."""
    options = options or {}
    if category == "summarization":
        return {"text": prompt, "format": options.get("format") or "3 sentences"}
    if category == "question-answering":
        return {"question": prompt}
    if category == "code-generation":
        return {"problem": prompt, "language": options.get("language") or detect_language(prompt)}
    if category == "classification":
        return {
            "text": prompt,
            "categories": options.get("categories") or "positive, negative, neutral",
        }
    if category == "creative-writing":
        variables = {key: options.get(key) or default for key, default in CREATIVE_DEFAULTS.items()}
        variables["topic"] = options.get("topic") or prompt
        return variables
    if category == "reasoning":
        return {"problem": prompt}
    return {"input": prompt}


def format_prompt(category: str | None, prompt: str, options: dict | None = None) -> str:
    """Render the prompt for a category.

    >>> format_prompt("question-answering", "What is 2+2?")
    '\\nQuestion: What is 2+2?\\n\\nAnswer:\\n'
    """
    category = category if category in TEMPLATES else DEFAULT_CATEGORY
    return get_template(category).format(**template_variables(category, prompt, options))
