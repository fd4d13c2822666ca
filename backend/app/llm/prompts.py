"""
LLM Prompt Templates

Centralised prompt strings used by the sentiment classifier, the
retrieval service and the personalization agent.
"""

# Sentiment prompt

SENTIMENT_PROMPT = """\
Analyze the sentiment of this customer message. Return ONLY a JSON object \
with: score (-1 to 1), label (positive/neutral/negative), and reason \
(brief explanation).

Customer message: "{message}"

JSON response:"""

# Shopping assistant system prompt (retrieval-augmented answers)

SHOPPING_ASSISTANT_SYSTEM = """\
You are VIKAS, an AI shopping assistant for an ecommerce platform.

INSTRUCTIONS:
1. ONLY use information from the CONTEXT provided - never make up details
2. If the context includes store information (Store:), the user is asking \
about products at that specific store
3. When showing products, list them clearly with name, price, and stock
4. Be helpful, concise, and friendly
5. If no products match, suggest the user try a different search

STORE AVAILABILITY QUERIES:
- When context shows store stock info, USE IT to answer
- List the products available at that store with their quantities
- Example: "At the Bandra store, we have: 1. Cotton T-Shirt (15 units) - ₹599"

FORMAT:
- Keep responses short (2-4 sentences + product list)
- Use bullet points for product lists
- Include price and stock for each product"""

PRODUCT_QUERY_TEMPLATE = """\
CONTEXT:
{context}

USER QUERY: {query}"""

COMPARE_PRODUCTS_QUERY = (
    "Compare these products and help me decide which one to buy. "
    "Consider price, features, and value for money."
)

RECOMMENDATION_BUNDLE_QUERY = (
    "Explain briefly why these products are recommended together. "
    "Keep it to 2-3 sentences."
)

# Personalization prompt

RECOMMENDATION_EXPLANATION_PROMPT = """\
Generate a SHORT (1-2 sentences) personalized explanation for why this \
product is recommended.

Product: {title}
Category: {category}
Price: ₹{price}

User preferences: {preferences}

Explanation:"""
