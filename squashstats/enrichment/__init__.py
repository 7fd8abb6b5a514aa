"""
Enrichment layer for squash venues.

Key Components:
- gateways: thin HTTP clients for Google Places, Translate, Facebook and web search
- llm: LangChain chat client and OpenAI web-search client
- classification: Type Mapper, Context Analyzer, AI Categorizer, Court-Count Analyzer
- stages / categorizer: the per-venue pipeline and its orchestrator
"""
