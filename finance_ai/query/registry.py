"""Static schema registry for the three business tables.

The registry is the single source of field names, human labels, column types and Russian synonyms.
It grounds the translator prompt and feeds the fuzzy field resolver used by both the data adapter
and the client query engine. It is immutable and loaded once per process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal

SchemaType = Literal["string", "number", "date", "boolean"]


class Table(StrEnum):
    """The closed set of tables the assistant may query."""

    clients = "clients"
    contacts = "contacts"
    tenders = "tenders"


@dataclass(frozen=True)
class ColumnSchema:
    """Description of one column: key, label, type and the synonyms users say instead."""

    field: str
    label: str
    type: SchemaType
    description: str
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class TableSchema:
    """Description of one table."""

    table: Table
    title: str
    description: str
    columns: tuple[ColumnSchema, ...]
    # Date column used when a temporal request does not say which date to filter on.
    default_date_field: str | None = None
    default_date_field_description: str | None = None
    # Categorical columns filtered by exact membership in a selected set.
    multi_select_fields: tuple[str, ...] = field(default=())

    def column(self, name: str) -> ColumnSchema | None:
        for col in self.columns:
            if col.field == name:
                return col
        return None


_CLIENTS = TableSchema(
    table=Table.clients,
    title="Клиенты (clients)",
    description=(
        "Справочник клиентов компании: базовая информация о компаниях, с которыми ведётся работа."
    ),
    columns=(
        ColumnSchema(
            field="mgc_client",
            label="Название клиента",
            type="string",
            description=(
                "Официальное название клиента (компании). По этому полю клиента проще всего "
                "искать и связывать с другими данными."
            ),
            aliases=("клиент", "компания", "название клиента", "бренд"),
        ),
        ColumnSchema(
            field="Ul",
            label="Юридическое лицо клиента",
            type="string",
            description="Юридическое лицо клиента (ООО/АО и т.п.), если отличается от брендового названия.",
            aliases=("юрлицо", "юр лицо", "юридическое лицо"),
        ),
        ColumnSchema(
            field="Client_category",
            label="Категория/направление клиента",
            type="string",
            description="Категория или направление клиента (чем занимается клиент, сегмент рынка).",
            aliases=("категория клиента", "направление клиента", "отрасль"),
        ),
        ColumnSchema(
            field="description",
            label="Дополнительная информация о клиенте",
            type="string",
            description="Свободный текст с дополнительной информацией о клиенте (комментарии, заметки).",
            aliases=("описание", "комментарий", "заметки"),
        ),
        ColumnSchema(
            field="top_30",
            label="Входит в топ-30 клиентов",
            type="boolean",
            description="Признак, входит ли клиент в топ-30 ключевых клиентов компании.",
            aliases=("топ 30", "ключевой клиент", "strategic client"),
        ),
        ColumnSchema(
            field="id_pf",
            label="ID клиента в Planfix",
            type="string",
            description="Уникальный идентификатор клиента в системе Planfix (используется для связей).",
            aliases=("id клиента", "id planfix", "ид клиента"),
        ),
        ColumnSchema(
            field="Inn",
            label="ИНН клиента",
            type="string",
            description="ИНН юридического лица клиента. Можно использовать для точного сопоставления.",
            aliases=("инн", "налоговый номер"),
        ),
        ColumnSchema(
            field="pf_client",
            label="Название клиента в Planfix",
            type="string",
            description="Как клиент называется в Planfix (может отличаться от mgc_client).",
            aliases=("название в planfix", "имя в планфикс"),
        ),
    ),
)

_CONTACTS = TableSchema(
    table=Table.contacts,
    title="Контакты (contacts)",
    description="Контактные лица по клиентам: люди, с которыми идёт коммуникация.",
    columns=(
        ColumnSchema(
            field="id_pf",
            label="ID контакта в Planfix",
            type="string",
            description="Уникальный идентификатор контакта в Planfix (для технических связей).",
            aliases=("id контакта", "id_pf контакта"),
        ),
        ColumnSchema(
            field="gender",
            label="Пол контакта",
            type="string",
            description="Пол контактного лица (женский/мужской).",
            aliases=("пол", "gender"),
        ),
        ColumnSchema(
            field="site",
            label="Сайт контакта",
            type="string",
            description="Персональный сайт или сайт компании, связанный с контактом.",
            aliases=("сайт", "website"),
        ),
        ColumnSchema(
            field="name",
            label="Имя и фамилия контакта",
            type="string",
            description="Полное имя контактного лица (ФИО). Основное поле для обращения к человеку.",
            aliases=("имя", "фамилия", "фио", "контакт"),
        ),
        ColumnSchema(
            field="phone",
            label="Телефон контакта",
            type="string",
            description="Основной телефонный номер контакта.",
            aliases=("телефон", "номер телефона", "mobile"),
        ),
        ColumnSchema(
            field="e-mail",
            label="E-mail контакта",
            type="string",
            description="Адрес электронной почты контактного лица (для деловой переписки).",
            aliases=("email", "почта", "электронная почта"),
        ),
        ColumnSchema(
            field="work_position",
            label="Должность контакта",
            type="string",
            description="Должность контакта в компании-клиенте (например: маркетинг-директор).",
            aliases=("должность", "position", "роль"),
        ),
        ColumnSchema(
            field="company",
            label="Компания контакта",
            type="string",
            description="Компания, в которой работает контакт (должна совпадать с названием клиента).",
            aliases=("компания", "клиент контакта", "организация"),
        ),
        ColumnSchema(
            field="telegram",
            label="Telegram контакта",
            type="string",
            description="Ссылка или ник в Telegram для связи с контактом.",
            aliases=("телеграм", "tg", "telegram"),
        ),
        ColumnSchema(
            field="date_birth",
            label="Дата рождения контакта",
            type="date",
            description="Дата рождения контактного лица.",
            aliases=("дата рождения", "др", "birthday"),
        ),
        ColumnSchema(
            field="adress",
            label="Адрес контакта",
            type="string",
            description="Почтовый или физический адрес, связанный с контактом.",
            aliases=("адрес", "address"),
        ),
    ),
)

_TENDERS = TableSchema(
    table=Table.tenders,
    title="Тендеры (tenders)",
    description=(
        "Лог всех тендеров и проектов: суммы, даты, статусы, источники и связи с клиентами."
    ),
    default_date_field="tender_start",
    default_date_field_description=(
        "Если в запросе есть период времени по тендерам (например: «за прошлый месяц», "
        "«за 2024 год») без уточнения конкретного типа даты, интерпретируй это как фильтр по "
        "tender_start — дате начала тендера."
    ),
    multi_select_fields=("agency",),
    columns=(
        ColumnSchema(
            field="id_pf",
            label="ID тендера в Planfix",
            type="string",
            description="Уникальный идентификатор тендера в Planfix (техническое поле).",
            aliases=("id тендера", "id_pf тендера"),
        ),
        ColumnSchema(
            field="agency",
            label="Агентство",
            type="string",
            description="Агентство, которое играло тендер (кто участвовал от агентской стороны).",
            aliases=("агентство", "agency"),
        ),
        ColumnSchema(
            field="client",
            label="Клиент тендера",
            type="string",
            description="Название клиента (компании), по которому проходил тендер.",
            aliases=("клиент", "компания клиента", "заказчик"),
        ),
        ColumnSchema(
            field="project",
            label="Проект / канал тендера",
            type="string",
            description="Проект или канал, по которому игрался тендер (например: digital, ТВ, PR).",
            aliases=("проект", "канал", "направление тендера"),
        ),
        ColumnSchema(
            field="client_category",
            label="Категория клиента",
            type="string",
            description="Категория или направление клиента, для которого проводился тендер.",
            aliases=("категория клиента", "отрасль клиента"),
        ),
        ColumnSchema(
            field="tender_ist",
            label="Источник тендера",
            type="string",
            description=(
                "Откуда стало известно о тендере (рекомендация, площадка, холодный заход и т.п.)."
            ),
            aliases=("источник тендера", "канал привлечения тендера"),
        ),
        ColumnSchema(
            field="tender_budget",
            label="Бюджет тендера",
            type="number",
            description="Суммарный бюджет тендера в рублях. Ключевое числовое поле для аналитики.",
            aliases=("бюджет", "сумма тендера", "объём тендера"),
        ),
        ColumnSchema(
            field="tender_start",
            label="Дата начала тендера",
            type="date",
            description=(
                "Дата старта тендера. По умолчанию используется для фильтрации по периодам, если "
                "пользователь не уточнил конкретное поле даты."
            ),
            aliases=("старт тендера", "начало тендера", "tender start"),
        ),
        ColumnSchema(
            field="tender_dl",
            label="Дэдлайн тендера",
            type="date",
            description="Дэдлайн (крайний срок подачи материалов/предложения).",
            aliases=("дэдлайн", "дл", "срок сдачи", "deadline"),
        ),
        ColumnSchema(
            field="tender_end",
            label="Дата окончания тендера",
            type="date",
            description="Дата, когда тендер завершился (последний день тендера).",
            aliases=("конец тендера", "окончание тендера"),
        ),
        ColumnSchema(
            field="tender_status",
            label="Статус тендера",
            type="string",
            description="Статус тендера: выигран, проигран, ждём ответа, подготовка КП и т.п.",
            aliases=("статус", "результат тендера", "stage"),
        ),
        ColumnSchema(
            field="tender_KP_start",
            label="Начало подготовки КП",
            type="date",
            description="Дата начала подготовки коммерческого предложения по тендеру.",
            aliases=("старт кп", "начало кп", "kp start"),
        ),
        ColumnSchema(
            field="tender_KP_end",
            label="Окончание подготовки КП",
            type="date",
            description="Дата завершения подготовки коммерческого предложения по тендеру.",
            aliases=("финиш кп", "окончание кп", "kp end"),
        ),
    ),
)

SCHEMAS: dict[Table, TableSchema] = {
    Table.clients: _CLIENTS,
    Table.contacts: _CONTACTS,
    Table.tenders: _TENDERS,
}

TABLE_TITLES_RU: dict[Table, str] = {
    Table.clients: "Клиенты",
    Table.contacts: "Контакты",
    Table.tenders: "Тендеры",
}


def describe(table: Table) -> TableSchema:
    """Return the schema of a table.

    Callers are expected to restrict `table` to the `Table` enumeration before calling.
    """

    return SCHEMAS[Table(table)]


def table_from_name(name: str | None) -> Table | None:
    """Map a table name (case-insensitive) to `Table`, or `None` if it is not one of ours."""

    value = (name or "").strip().lower()
    try:
        return Table(value)
    except ValueError:
        return None


def label_overrides(table: Table | None = None) -> dict[str, str]:
    """Lowercased field name or synonym -> human label.

    With a table, its own fields and synonyms come first. Fields of the other tables follow as a
    fallback; an earlier label is never overridden (`id_pf` keeps the first label seen).
    """

    overrides: dict[str, str] = {}
    if table is not None:
        for col in describe(table).columns:
            overrides.setdefault(col.field.lower(), col.label)
            for alias in col.aliases:
                overrides.setdefault(alias.lower(), col.label)
    for schema in SCHEMAS.values():
        for col in schema.columns:
            overrides.setdefault(col.field.lower(), col.label)
    return overrides


def _describe_column(col: ColumnSchema) -> str:
    line = f"- {col.field} — {col.label} ({col.type}). {col.description}"
    if col.aliases:
        line += " Синонимы: " + ", ".join(col.aliases) + "."
    return line


def grounding_text() -> str:
    """Render the schema description embedded in the translator system prompt."""

    parts: list[str] = ["ОПИСАНИЕ СХЕМЫ ДАННЫХ:"]
    for idx, schema in enumerate(SCHEMAS.values(), start=1):
        parts.append("")
        parts.append(f"{idx}) Таблица {schema.table.value} — {schema.title}. {schema.description}")
        parts.extend(_describe_column(col) for col in schema.columns)
        if schema.default_date_field:
            parts.append(
                f"Поле даты по умолчанию: {schema.default_date_field}. "
                f"{schema.default_date_field_description or ''}".rstrip()
            )
        for multi in schema.multi_select_fields:
            parts.append(
                f"Фильтр по полю {multi}: если пользователь упоминает конкретное значение "
                f"(например, агентство), добавь фильтр {{\"field\": \"{multi}\", "
                f"\"operator\": \"contains\", \"value\": \"<значение из запроса>\"}}."
            )
    return "\n".join(parts)
