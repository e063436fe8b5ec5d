"""
Generation: chat-model access, prompts, and answer synthesis.

Public API
----------
- :class:`~hybrid_kb.generation.synthesizer.AnswerSynthesizer`: one
  grounded completion per question.
- :class:`~hybrid_kb.generation.synthesizer.AnswerService`: retrieve then
  synthesize.
- :func:`~hybrid_kb.generation.llm.get_llm`: configured chat model.
"""
