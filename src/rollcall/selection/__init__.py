"""Selection module -- picking a participant during a meeting spin.

Components:
- schemas: Pydantic schemas (Participant, Meeting, SelectionRecord, outcomes)
  and the SelectionScope value type
- models: SQLAlchemy models (MeetingModel, ParticipantModel, SelectionRecordModel)
- repository: SelectionRepository reads plus transactional SelectionUnitOfWork
- pool: ParticipantPool candidate resolution and the recency eligibility policy
- strategies: Random, Weighted and Manual pick algorithms
- coordinator: TransactionCoordinator for atomic record + counter writes
- engine: SelectionEngine facade used by collaborator services
"""
