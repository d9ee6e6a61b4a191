# -*- coding: utf-8 -*-
# cardsheet/exceptions.py
class CardSheetException(Exception):
    """Base application exception"""
    pass

class DecodeFailure(CardSheetException):
    """Bytes are not a decodable image"""
    pass

class FetchFailure(CardSheetException):
    """Network error, non-success status or non-image content"""
    pass

class StorageWriteFailure(CardSheetException):
    """Storage quota exceeded or storage unavailable"""
    pass

class ImportSchemaInvalid(CardSheetException):
    """Malformed snapshot or version mismatch"""
    pass

class DocumentBuildFailure(CardSheetException):
    """Export document could not be assembled"""
    pass

class LayoutCalculationError(CardSheetException):
    """Sheet layout does not fit the page"""
    pass
