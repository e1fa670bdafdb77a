#!/usr/bin/env python

"""
    Core module for Libris: database, catalog, ledgers and the loan
    lifecycle

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""
