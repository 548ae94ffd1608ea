"""Error taxonomy shared by the gateway, the ledger and the catalog.

Every error carries a user-facing message. The API turns them into
``{"detail": message, "code": name}`` responses with ``status_code``.
"""


class LedgerError(Exception):
    status_code = 400
    default_message = "Bir hata oluştu"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(LedgerError):
    """Rejected input, raised before any call to the backend."""

    default_message = "Geçersiz giriş"


class AlreadyReversed(ValidationError):
    status_code = 409
    default_message = "Bu hareket zaten geri alınmış"


class InsufficientStock(LedgerError):
    status_code = 409
    default_message = "Stok 0'ın altına düşemez"


class StaleStock(LedgerError):
    """The item changed between the caller's read and its write."""

    status_code = 409
    default_message = "Stok başka bir işlem tarafından değiştirildi, lütfen yenileyin"


class ActionCancelled(LedgerError):
    status_code = 409
    default_message = "İşlem onaylanmadı"


class ConfirmationRequired(ActionCancelled):
    """The action needs an explicit confirmation; the message is the prompt."""

    status_code = 428
    default_message = "İşlem onay gerektiriyor"


class NotFound(LedgerError):
    status_code = 404
    default_message = "Kayıt bulunamadı"


class TransportError(LedgerError):
    """Backend or network failure. The message is passed through verbatim."""

    status_code = 502
    default_message = "Sunucuya ulaşılamadı"


class BackendNotConfigured(TransportError):
    status_code = 503
    default_message = "Sunucu yapılandırması eksik"
