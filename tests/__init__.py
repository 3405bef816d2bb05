"""
Prediction Agents Test Suite

Tests for agent memory and cost optimization:
- Unit tests: retrieval, evolution tracking, formatting, costs, graph nodes
- Integration tests: FastAPI health and cost endpoints
- Mocked tests: No live ChromaDB or LLM provider required
"""
