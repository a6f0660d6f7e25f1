SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer all questions to the best of your ability. "
    "Keep answers short and refer back to earlier turns of the conversation when relevant."
)

QUESTION_ANSWERING_PROMPT = (
    "Answer the user's questions based on the below context. "
    "If the context doesn't contain any relevant information to the question, "
    "don't make something up and just say \"I don't know\":\n\n"
    "<context>\n{context}\n</context>"
)

QUERY_TRANSFORM_PROMPT = (
    "Given the above conversation, generate a search query to look up in order to get "
    "information relevant to the conversation. Only respond with the query, nothing else."
)

SUMMARY_PROMPT = (
    "Distill the above chat messages into a single summary message. "
    "Include as many specific details as you can."
)
