"""
SchemaForge

AI-assisted JSON-LD structured data generator:
1. Checks a URL and extracts a fact sheet from the page
2. Gates the requested schema type against the page content
3. Reserves a billing credit, then generates candidates with Claude or OpenAI
4. Validates, scores and persists the result
5. Refunds the credit exactly once when anything fails
"""

__version__ = "0.1.0"
