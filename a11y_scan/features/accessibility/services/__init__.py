"""
Accessibility scan services

Organized by the step of a scan they own, in the order a request flows through them:

1. session/ - Browser lifecycle
   - browser_session.py: launch a throwaway headless Chrome, navigate (DOM-ready only), tear down
   - request_filter.py: which resource types may load (images are dropped)

2. analysis/ - Rule engine
   - axe_analyzer.py: inject axe-core, run the reduced WCAG ruleset, parse violations

3. enrichment/ - LLM integration
   - explanation_client.py: OpenAI compatible chat client (OpenRouter by default)
   - prompts.py: explanation and summary prompts
   - finding_enricher.py: explain the first N findings, fallback text on any failure

4. orchestration/ - Scan coordination
   - scan_orchestrator.py: one deadline over the whole scan, always releases the session
   - report_builder.py: summary counts, score and the final report

Every scan builds its own collaborators; nothing here is shared between requests.
"""
