"""
Message templates for workflow notifications, keyed by template id.
Subjects and bodies are ``str.format`` patterns over the event context;
missing keys render as "-".
"""
from __future__ import annotations

import html
from typing import Any, Mapping

TEMPLATES: dict[str, tuple[str, str]] = {
    "asset_loan.requested": (
        "Pengajuan Peminjaman Asset Baru - {asset_name}",
        "Warga {citizen_name} mengajukan peminjaman {asset_name} ({asset_code}).\n"
        "Alasan: {reason}\n"
        "Tanggal pinjam: {borrowed_at}\n"
        "Rencana kembali: {expected_return_date}",
    ),
    "asset_loan.approved": (
        "Peminjaman Asset Disetujui - {asset_name}",
        "Halo {recipient_name},\n\n"
        "Peminjaman {asset_name} telah disetujui.\n"
        "Harap kembalikan sebelum {expected_return_date}.\n"
        "Catatan admin: {note}",
    ),
    "asset_loan.rejected": (
        "Peminjaman Asset Ditolak - {asset_name}",
        "Halo {recipient_name},\n\n"
        "Peminjaman {asset_name} ditolak.\n"
        "Catatan admin: {note}",
    ),
    "social_aid.enrolled": (
        "Anda Terdaftar sebagai Penerima {program_name}",
        "Halo {recipient_name},\n\n"
        "Anda terdaftar sebagai penerima bantuan {program_name} periode {period}.\n"
        "Lokasi pengambilan: {location}",
    ),
    "social_aid.collected": (
        "Bantuan {program_name} Telah Diterima",
        "Halo {recipient_name},\n\n"
        "Bantuan {program_name} periode {period} tercatat telah diambil.\n"
        "Catatan: {note}",
    ),
    "social_aid.new_program": (
        "Program Bansos Baru - {program_name}",
        "Halo {recipient_name},\n\n"
        "Program bantuan sosial baru: {program_name} ({period}).\n"
        "{description}",
    ),
    "document.approved": (
        "Pengajuan {document_name} Sedang Diproses",
        "Halo {recipient_name},\n\n"
        "Pengajuan {document_name} Anda disetujui dan sedang diproses.\n"
        "Catatan admin: {note}",
    ),
    "document.rejected": (
        "Pengajuan {document_name} Ditolak",
        "Halo {recipient_name},\n\n"
        "Pengajuan {document_name} Anda ditolak.\n"
        "Alasan: {note}",
    ),
    "document.completed": (
        "Pengajuan {document_name} Selesai",
        "Halo {recipient_name},\n\n"
        "Dokumen {document_name} Anda telah selesai.\n"
        "Catatan admin: {note}",
    ),
    "document.reminder": (
        "Informasi Pengajuan {document_name}",
        "Halo {recipient_name},\n\n"
        "{note}",
    ),
    "event.new_event": (
        "Kegiatan Desa Baru - {event_name}",
        "Halo {recipient_name},\n\n"
        "{event_name} akan dilaksanakan di {location} pada {date_start}.\n"
        "{description}",
    ),
}


class _Defaults(dict):
    def __missing__(self, key: str) -> str:
        return "-"


def render(template_id: str, context: Mapping[str, Any]) -> tuple[str, str]:
    """Return (subject, plain-text body). Raises KeyError for an unknown template."""
    subject, body = TEMPLATES[template_id]
    values = _Defaults({k: ("-" if v is None else v) for k, v in context.items()})
    return subject.format_map(values), body.format_map(values)


def render_html(body: str) -> str:
    return "<html><body><p>" + html.escape(body).replace("\n", "<br>") + "</p></body></html>"
