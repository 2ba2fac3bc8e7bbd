"""
Notebook Backend: Services Layer
=================================

What:  Business logic layer sitting between routes (HTTP) and database (persistence).
Why:   Routes handle HTTP; services own authorization, validation, workflows
       and the order in which storage and database writes happen.
How:   Services receive the request's AsyncSession and the calling User; the
       shared collaborators (FileStore, LLMService) are injected once.

Service Inventory:
    - authorization:       Policy table + authorize() used by every operation
    - FileStore:           Local disk or HTTP object storage behind one interface
    - NoteService:         Note library: list, upload, delete, download lookup
    - ModerationService:   Note requests: submit, list, approve, reject
    - CollegeService:      College registry
    - SummaryService:      note → fetch → extract → truncate → LLMService
    - LLMService (abstract) / GeminiSummarizer: the summarization model
"""
