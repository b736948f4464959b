import dandistream

# Define the URL for a remote NWB file
h5_url = "https://api.dandiarchive.org/api/assets/11f512ba-5bcf-4230-a8cb-dc8d36db38cb/download/"

# Byte ranges are cached in ~/.dandistream/cache (or $DANDISTREAM_LOCAL_CACHE_DIR)
# so running this a second time does not hit the network for the same data
with dandistream.open_session(h5_url, verbose=True) as session:
    print(session.available_substructures())
    if session.has_substructure('units'):
        units = session.get_event_table()
        for unit_id, spike_times in units.items():
            print(f'Unit {unit_id}: {len(spike_times)} spikes')
    if session.has_substructure('trials'):
        trials = session.get_interval_table()
        print(f'{len(trials)} trials with columns {trials.colnames}')
