"""
Confessio - Reformed Theology Question Answering

Hybrid retrieval over confessions, catechisms and study notes:
- pgvector for semantic search
- PostgreSQL full-text search (Portuguese)
- Neo4j topic tags for relational search
- Direct citation lookup ("CFW 21.1", "CM 98")
- Gemini for embeddings and answer generation
"""

__version__ = "1.0.0"
