"""
Core Application Constants
Defines question-set defaults shared across the service.
"""

# Round defaults for the "add new" controls
DEFAULT_PREPARE_TIME_SECONDS = 10
DEFAULT_ANSWER_TIME_MINUTES = 2
DEFAULT_CODING_DURATION_MINUTES = 15
DEFAULT_APTITUDE_QUESTION_COUNT = 5
DEFAULT_APTITUDE_TIME_PER_QUESTION_MINUTES = 1

DEFAULT_INTERVIEW_PLATFORM = "BROWSER"
DEFAULT_CODING_SOURCE = "CODING_LIBRARY"
DEFAULT_APTITUDE_TOPIC = "NUMERICAL_REASONING"
DEFAULT_SHUFFLE_MODE = "RANDOM"
DEFAULT_INSTRUCTION_TYPE = "GENERAL"

# Seeded into the general round when a draft is opened for a new position
STARTER_GENERAL_QUESTIONS = (
    "Tell me about yourself?",
    "Why are you interested in this position?",
)

DEFAULT_INSTRUCTION = """Welcome to the Interview Assessment

Please follow these guidelines carefully:

1. READ EACH QUESTION THOROUGHLY
  - Take your time to understand what is being asked
  - Pay attention to all details and requirements

2. PROVIDE COMPREHENSIVE ANSWERS
  - Answer all questions to the best of your ability
  - Be clear, concise, and specific in your responses
  - Use examples from your experience when relevant

3. TIME MANAGEMENT
  - Manage your time wisely across all sections
  - Ensure you complete all questions within the allocated time
  - Review your answers before submitting

4. TECHNICAL REQUIREMENTS
  - Ensure you have a stable internet connection
  - Use a modern browser for the best experience
  - Save your work periodically

5. SUBMISSION
  - Double-check all your answers before final submission
  - Once submitted, you cannot make changes
  - Contact support if you encounter any technical issues

Good luck with your assessment!"""
