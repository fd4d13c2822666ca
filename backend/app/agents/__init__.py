"""
Specialised Shopping Agents

Each agent handles one family of intents behind the common
:class:`~backend.app.agents.base_agent.BaseAgent` contract:

- **Product & Inventory** - search, per-store stock and pricing.
- **Personalization** - history-driven recommendations.
- **Order & Fulfillment** - tracking, returns and checkout readiness.
- **Immersive Experience** - AR try-on and 3D viewer eligibility.
- **Customer Experience** - sentiment, greetings and human escalation.
- **Analytics** - dashboard metrics and insights for admins.

The orchestrator owns routing between them.
"""
