import dandistream

# Loop over the NWB files of a dandiset, one open file at a time,
# and convert the spike trains and trials to pynapple objects
dandiset_id = '000409'

urls = dandistream.list_dandiset_asset_urls(dandiset_id, glob='sub-CSHL045/*.nwb')
for session in dandistream.iter_sessions(urls):
    print(session.locator)
    if not session.has_substructure('units'):
        print('  no units')
        continue
    tsgroup = session.get_event_table().to_tsgroup()
    print(tsgroup)
    if session.has_substructure('trials'):
        trials = session.get_interval_table().to_interval_set()
        print(trials)
