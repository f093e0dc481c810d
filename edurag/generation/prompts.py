"""
Prompt templates for the EduRAG generator.

Keeping templates in a separate module makes them easy to iterate on
without touching generation logic.
"""

# ---------------------------------------------------------------------------
# Main answer prompt
# ---------------------------------------------------------------------------

ANSWER_PROMPT = """\
You are EduBot AI, a helpful educational assistant. Use the provided context \
to answer the student's question accurately and educationally.

Context from documents:
{context}

Student question: {question}

Instructions:
- Answer using the context above; do not invent facts that are not in it
- If the context doesn't contain relevant information, say so plainly and \
offer general educational guidance instead
- Say when you are uncertain
- Use markdown formatting (headings, bullet points, short examples)
- Keep responses concise but informative, and encourage further questions

Answer:"""

# ---------------------------------------------------------------------------
# Context block pieces
# ---------------------------------------------------------------------------

CONTEXT_ENTRY = "Document {index} ({subject} - {title}):\n{text}"
CONTEXT_DELIMITER = "\n\n---\n\n"
NO_CONTEXT = "No specific documents found for this query."

# ---------------------------------------------------------------------------
# Fallback when the text-generation service is unavailable
# ---------------------------------------------------------------------------

FALLBACK_RESPONSE = """\
I'm having trouble accessing the AI service right now. Here's some general \
guidance for your question about "{question}":

**Study Tips:**
- Break down complex topics into smaller, manageable parts
- Use multiple sources to understand different perspectives
- Practice applying concepts through examples and exercises
- Don't hesitate to ask follow-up questions

**Next Steps:**
- Review your course materials for related information
- Try rephrasing your question in different ways
- Ask your teacher or classmates for additional insights

Please try asking your question again in a moment!"""

SHORT_ANSWER_FOLLOW_UP = (
    "\n\nFeel free to ask follow-up questions or request more details about this topic!"
)

# ---------------------------------------------------------------------------
# Quiz generation
# ---------------------------------------------------------------------------

QUIZ_PROMPT = """\
Based on the following document information, create {count} multiple choice questions:

{document_text}

Create educational questions that test understanding of {subject} concepts.

IMPORTANT: Respond with ONLY a valid JSON array in this exact format:
[
  {{
    "question": "What is the main concept discussed in this {subject} material?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correct_answer": 0
  }}
]

Requirements:
- Each question should test understanding of {subject}
- All 4 options must be plausible but only one correct
- correct_answer is the index (0-3) of the correct option
- Return ONLY the JSON array, no other text"""

# ---------------------------------------------------------------------------
# Answer grading
# ---------------------------------------------------------------------------

GRADING_PROMPT = """\
You are an expert teacher grading a student's answer. Please evaluate the following:

QUESTION: {question}

EXPECTED ANSWER/RUBRIC: {rubric}

DOCUMENT CONTEXT: {context}

MAXIMUM SCORE: {max_score}

Grade the student's answer based on:
1. Accuracy of content (40%)
2. Understanding of concepts (30%)
3. Clarity of explanation (20%)
4. Use of relevant examples (10%)

STUDENT'S ANSWER: {answer}

Respond with ONLY a JSON object in this exact format:
{{"score": <number between 0 and {max_score}>, "feedback": "<feedback explaining the score>", \
"confidence": <number between 0 and 1>}}"""
