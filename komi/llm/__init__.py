"""
LLM integration layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Send structured-extraction prompts (system + user message pair).
- Strip markdown fencing and parse the reply as a JSON object.
- Translate SDK and parsing failures into the pipeline's typed errors.
"""
