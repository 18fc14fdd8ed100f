"""Export, bulk resolution and import of metaobjects.

Import submodules directly (e.g. ``migration.importer``); the schemas
package depends on ``migration.references``.
"""
