"""Prompts for LLM content generation, one user template per content type."""

SYSTEM_PROMPT = """You are an experienced language teacher writing material for a
CEFR-aligned course. Content must be accurate, natural and appropriate for the
requested level. English is the explanation language.

Output format: Structured JSON matching the requested schema.
"""

MEANING_PROMPT_TEMPLATE = """Generate a vocabulary word for language learning.

**Language**: {language}
**CEFR Level**: {level}

**Requirements**:
- Choose a common, useful word appropriate for {level} learners
- Provide the word in the target language
- Provide an English definition (at least one full phrase)
- Provide the part of speech (noun, verb, adjective, adverb, preposition, conjunction)
- Provide brief usage notes
{avoid_clause}"""

UTTERANCE_PROMPT_TEMPLATE = """Generate an example sentence using a specific word.

**Word**: "{word}"
**Language**: {language}
**CEFR Level**: {level}

**Requirements**:
- Create a natural, authentic sentence that uses this word
- The sentence must suit {level} learners (A1: 5-8 words, B1: 8-12 words)
- Provide an English translation
- Add usage notes only when context is needed
"""

GRAMMAR_PROMPT_TEMPLATE = """Generate a grammar rule explanation for language learners.

**Language**: {language}
**CEFR Level**: {level}
**Grammar Category**: {category}

**Requirements**:
- Explain one specific grammar rule clearly and concisely
- Provide 2-3 examples; each has a correct sentence, optionally an incorrect one and a note
- Describe common mistakes learners make
- Use simple language appropriate for {level} learners
"""

EXERCISE_PROMPT_TEMPLATE = """Generate a practice exercise for language learners.

**Language**: {language}
**CEFR Level**: {level}
**Exercise Type**: Multiple choice vocabulary

**Requirements**:
- Create a fill-in-the-blank sentence with 4 answer options
- One correct answer and three plausible distractors, all distinct
- Give the 0-based index of the correct option
- Appropriate difficulty for {level}
"""
