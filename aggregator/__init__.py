"""
Aggregator package for the sing-box profile builder.

Modules:
- parser: Parse subscription payloads into Node records
- filters: Drop control constructs, high-rate and placeholder nodes
- classifier: Map node labels to region codes by keyword
- groups: Build urltest groups per (source, region)
- policy: Decide selector membership from the policy table
- assembler: Merge template, groups and nodes into the final profile
- builder: Wire the stages together
- fetcher: Download the template and subscription sources
- settings: config.yaml + environment
- reporter: Markdown build report
"""
