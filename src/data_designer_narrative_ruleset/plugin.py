from data_designer.plugins.plugin import Plugin, PluginType

narrative_ruleset_plugin = Plugin(
    config_qualified_name="data_designer_narrative_ruleset.config.NarrativeRulesetColumnConfig",
    impl_qualified_name="data_designer_narrative_ruleset.generator.NarrativeRulesetColumnGenerator",
    plugin_type=PluginType.COLUMN_GENERATOR,
)
