"""Infrastructure and input failures. Business outcomes (ineligible, declined) are results, not exceptions."""


class LoanEngineError(Exception):
    pass


class LoanNotFoundError(LoanEngineError):
    def __init__(self, loan_id: str):
        super().__init__(f"Loan {loan_id} not found")
        self.loan_id = loan_id


class InvalidStatusError(LoanEngineError):
    def __init__(self, status: str):
        super().__init__(f"Unknown loan status '{status}'")
        self.status = status


class TerminalStatusError(LoanEngineError):
    def __init__(self, loan_id: str, status: str):
        super().__init__(f"Loan {loan_id} is {status}; no further status changes are allowed")
        self.loan_id = loan_id
        self.status = status


class ReferenceDataError(LoanEngineError):
    pass


class NeedsListInsertError(LoanEngineError):
    def __init__(self, document_type: str, folder_name: str, cause: Exception):
        super().__init__(f"Could not insert needs-list item {document_type!r} in {folder_name!r}: {cause}")
        self.document_type = document_type
        self.folder_name = folder_name
        self.cause = cause
