"""
Built-in importer and converter plugins. Loaded by name through
scenepipe.adapters.PluginManager, never imported eagerly.
"""
