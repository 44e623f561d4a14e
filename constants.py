"""Static lookup tables shared by the API server, the client and the CLI."""

# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------

API_ENDPOINTS = {
    "openrouter": {
        "models": "/api/openrouter/models",
        "completions": "/api/openrouter/completions",
        "chat_completions": "/api/openrouter/chat/completions",
        "test": "/api/openrouter/test",
        "test_api_key": "/api/openrouter/test-api-key",
    },
    "benchmarks": {
        "run": "/api/benchmarks/run",
        "status": "/api/benchmarks/{id}/status",
        "results": "/api/benchmarks/{id}/results",
        "list": "/api/benchmarks",
    },
    "configs": {
        "list": "/api/configs",
        "get": "/api/configs/{id}",
        "create": "/api/configs",
        "update": "/api/configs/{id}",
        "delete": "/api/configs/{id}",
        "get_by_public_id": "/api/configs/public/{public_id}",
    },
    "results": {
        "list": "/api/results",
        "get": "/api/results/{id}",
        "delete": "/api/results/{id}",
        "get_by_public_id": "/api/results/public/{public_id}",
        "export": "/api/results/{id}/export",
    },
}


def endpoint(group: str, name: str, **params) -> str:
    """Resolve an API path, e.g. endpoint("benchmarks", "status", id="abc")."""
    return API_ENDPOINTS[group][name].format(**params)


# ---------------------------------------------------------------------------
# Task categories and default parameters
# ---------------------------------------------------------------------------

TASK_CATEGORIES = [
    {"id": "text-completion", "name": "Text Completion"},
    {"id": "summarization", "name": "Summarization"},
    {"id": "question-answering", "name": "Question Answering"},
    {"id": "code-generation", "name": "Code Generation"},
    {"id": "creative-writing", "name": "Creative Writing"},
    {"id": "reasoning", "name": "Reasoning"},
    {"id": "classification", "name": "Classification"},
]

TASK_CATEGORY_IDS = [c["id"] for c in TASK_CATEGORIES]

DEFAULT_MODEL_PARAMETERS = {
    "temperature": 0.7,
    "max_tokens": 1000,
    "top_p": 1,
    "frequency_penalty": 0,
    "presence_penalty": 0,
}

# ---------------------------------------------------------------------------
# Models and metrics
# ---------------------------------------------------------------------------

POPULAR_MODELS = [
    {
        "id": "openai/gpt-4",
        "name": "GPT-4",
        "provider": "OpenAI",
        "description": "OpenAI's most advanced model",
    },
    {
        "id": "openai/gpt-3.5-turbo",
        "name": "GPT-3.5 Turbo",
        "provider": "OpenAI",
        "description": "Fast and efficient model with good performance",
    },
    {
        "id": "anthropic/claude-3-opus",
        "name": "Claude 3 Opus",
        "provider": "Anthropic",
        "description": "Anthropic's most capable model",
    },
    {
        "id": "anthropic/claude-3-sonnet",
        "name": "Claude 3 Sonnet",
        "provider": "Anthropic",
        "description": "Balanced performance and efficiency",
    },
    {
        "id": "anthropic/claude-3-haiku",
        "name": "Claude 3 Haiku",
        "provider": "Anthropic",
        "description": "Fast and efficient model",
    },
    {
        "id": "meta-llama/llama-3-70b",
        "name": "Llama 3 (70B)",
        "provider": "Meta",
        "description": "Meta's largest open model",
    },
]

METRICS = [
    {
        "id": "latency",
        "name": "Latency",
        "description": "Response time in milliseconds",
        "unit": "ms",
        "lower_is_better": True,
    },
    {
        "id": "tokens",
        "name": "Token Usage",
        "description": "Number of tokens used",
        "unit": "tokens",
        "lower_is_better": True,
    },
    {
        "id": "cost",
        "name": "Cost",
        "description": "Estimated cost in USD",
        "unit": "USD",
        "lower_is_better": True,
    },
]

# ---------------------------------------------------------------------------
# Default test cases
# ---------------------------------------------------------------------------

DEFAULT_TEST_CASES = [
    {
        "id": "text-completion-1",
        "name": "Simple Text Completion",
        "category": "text-completion",
        "prompt": "Complete the following sentence: The quick brown fox",
        "expectedOutput": "",
    },
    {
        "id": "summarization-1",
        "name": "Article Summarization",
        "category": "summarization",
        "prompt": "Summarize the following article in 3 sentences: [Article text would go here]",
        "expectedOutput": "",
    },
    {
        "id": "question-answering-1",
        "name": "Factual Question",
        "category": "question-answering",
        "prompt": "What is the capital of France?",
        "expectedOutput": "Paris",
    },
    {
        "id": "code-generation-1",
        "name": "Simple Function",
        "category": "code-generation",
        "prompt": "Write a JavaScript function that returns the factorial of a number.",
        "expectedOutput": "",
    },
]

# Credits below this are flagged when a key is tested
MINIMUM_RECOMMENDED_CREDITS = 500
