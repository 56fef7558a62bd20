"""Исключения конвейера миниатюр.

Каждый сервис сообщает о своей ошибке собственным типом; контроллер перехватывает
их на границе компонента и превращает в запись журнала и резервное действие.
"""
from __future__ import annotations


class ThumbnailError(Exception):
    """Базовая ошибка конвейера."""


class ResolutionFailure(ThumbnailError):
    """На данном уровне цепочки не найдено пригодной иконки."""


class ConversionFailure(ThumbnailError):
    """Не удалось разобрать или растеризовать SVG."""


class MetadataFailure(ThumbnailError):
    """Не удалось записать ключ метаданных `Thumb::*`."""


class PublicationFailure(ThumbnailError):
    """Не удалось записать файл миниатюры в кэш."""
